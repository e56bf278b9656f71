# backend/textile_erp/routes/finance.py
"""
Credit (accounts receivable) API routes.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import ROLE_ACCOUNTANT, ROLE_DIRECTOR, current_user_id, require_auth, require_role
from ..errors import LedgerError, error_response
from ..extensions import db
from ..services import credit_service
from ..validation import get_json_payload, parse_date, require_fields, to_decimal, to_int


finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


@finance_bp.get("/credits")
@require_auth
def list_credits():
    """Outstanding credit sales, earliest due first. Optional ?customer_id=."""
    try:
        credits = credit_service.list_outstanding_credits(
            customer_id=to_int(request.args.get("customer_id"), "customer_id", required=False),
        )
        return jsonify([c.to_dict() for c in credits]), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Credit listing failed")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.post("/payment")
@require_role(ROLE_ACCOUNTANT, ROLE_DIRECTOR)
def record_payment():
    """
    Record a customer payment against a credit sale.

    Request body:
    {
        "credit_id": int,
        "amount": number (> 0),
        "payment_method": "cash" | "bank_transfer" | "cheque" | "card",
        "reference": str (optional)
    }

    Returns:
        200: {message, credit}
        400: Invalid request, or overpayment (body carries max_allowed)
        404: Credit record not found
    """
    try:
        data = get_json_payload()
        require_fields(data, "credit_id", "amount", "payment_method")

        credit = credit_service.record_payment(
            credit_id=to_int(data["credit_id"], "credit_id"),
            amount=to_decimal(data["amount"], "amount"),
            method=data["payment_method"],
            reference=data.get("reference"),
            user_id=current_user_id(),
        )

        current_app.logger.info(
            "Payment recorded: credit=%s amount=%s status=%s",
            credit.id, data["amount"], credit.status,
        )
        return jsonify({"message": "Payment recorded successfully", "credit": credit.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Payment recording failed")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/payment-history/<int:credit_id>")
@require_auth
def payment_history(credit_id: int):
    try:
        payments = credit_service.get_payment_history(credit_id)
        return jsonify([p.to_dict() for p in payments]), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Payment history query failed")
        return jsonify({"error": "Internal server error"}), 500


@finance_bp.get("/credit-aging")
@require_role(ROLE_ACCOUNTANT, ROLE_DIRECTOR)
def credit_aging():
    """Receivables aging per customer. Optional ?as_of=YYYY-MM-DD."""
    try:
        report = credit_service.credit_aging_report(
            as_of=parse_date(request.args.get("as_of"), "as_of"),
        )
        return jsonify(report), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Credit aging report failed")
        return jsonify({"error": "Internal server error"}), 500
