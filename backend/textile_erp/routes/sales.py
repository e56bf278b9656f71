# backend/textile_erp/routes/sales.py
"""
Sales invoice API routes.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import (
    ROLE_ACCOUNTANT,
    ROLE_DIRECTOR,
    ROLE_SALES_ASSISTANT,
    current_user_id,
    require_auth,
    require_role,
)
from ..errors import LedgerError, ValidationError, error_response
from ..extensions import db
from ..services import invoice_service
from ..validation import get_json_payload, parse_date, require_fields, to_int


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _invoice_items(raw_items) -> list[dict]:
    # The sales screen posts cart rows keyed by "id"
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")
    items = []
    for item in raw_items:
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object")
        product_id = item.get("product_id", item.get("id"))
        items.append({
            "product_id": to_int(product_id, "product_id"),
            "quantity": item.get("quantity"),
            "price": item.get("price", item.get("unit_price")),
        })
    return items


@sales_bp.post("/invoice")
@require_role(ROLE_SALES_ASSISTANT, ROLE_ACCOUNTANT, ROLE_DIRECTOR)
def create_invoice():
    """
    Issue an invoice.

    Request body:
    {
        "customer_id": int,
        "branch_id": int,
        "payment_method": "cash" | "credit",
        "items": [{"product_id": int, "quantity": number, "price": number}],
        "warehouse_id": int (optional, defaults to the main warehouse)
    }

    Returns:
        201: {message, invoiceId, invoice_number}
        400: Invalid request
        409: Not enough stock for a line
    """
    try:
        data = get_json_payload()
        require_fields(data, "customer_id", "branch_id", "payment_method")

        invoice = invoice_service.create_invoice(
            customer_id=to_int(data["customer_id"], "customer_id"),
            branch_id=to_int(data["branch_id"], "branch_id"),
            payment_method=data["payment_method"],
            items=_invoice_items(data.get("items") or []),
            user_id=current_user_id(),
            warehouse_id=to_int(data.get("warehouse_id"), "warehouse_id", required=False),
        )

        current_app.logger.info(
            "Invoice %s issued: customer=%s total=%s method=%s",
            invoice.invoice_number, invoice.customer_id, invoice.total_amount, invoice.payment_method,
        )
        return jsonify({
            "message": "Invoice created",
            "invoiceId": invoice.id,
            "invoice_number": invoice.invoice_number,
        }), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Invoice creation failed")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
@require_auth
def list_invoices():
    """Sales history. Optional ?startDate=&endDate= (YYYY-MM-DD, inclusive), ?customer_id=, ?status=."""
    try:
        invoices = invoice_service.list_invoices(
            start_date=parse_date(request.args.get("startDate"), "startDate"),
            end_date=parse_date(request.args.get("endDate"), "endDate"),
            customer_id=to_int(request.args.get("customer_id"), "customer_id", required=False),
            status=request.args.get("status"),
        )
        result = []
        for inv in invoices:
            item = inv.to_dict()
            item["customer_name"] = inv.customer.name if inv.customer else "Unknown"
            item["branch_name"] = inv.branch.name if inv.branch else None
            result.append(item)
        return jsonify(result), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Invoice listing failed")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice(invoice_id: int):
    """Invoice header plus its lines."""
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        header = invoice.to_dict()
        header["customer_name"] = invoice.customer.name if invoice.customer else None
        header["branch_name"] = invoice.branch.name if invoice.branch else None
        if invoice.credit_sale is not None:
            header["credit_id"] = invoice.credit_sale.id
            header["due_date"] = invoice.credit_sale.to_dict()["due_date"]
        return jsonify({
            "header": header,
            "items": [line.to_dict() for line in invoice.lines],
        }), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Invoice lookup failed")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:invoice_id>/cancel")
@require_role(ROLE_ACCOUNTANT, ROLE_DIRECTOR)
def cancel_invoice(invoice_id: int):
    """
    Cancel an invoice and return its stock.

    Returns:
        200: Cancelled invoice
        404: Invoice not found
        409: Already cancelled, or payments were recorded against it
    """
    try:
        invoice = invoice_service.cancel_invoice(invoice_id, user_id=current_user_id())
        current_app.logger.info(
            "Invoice %s cancelled by user=%s", invoice.invoice_number, current_user_id(),
        )
        return jsonify({"message": "Invoice cancelled", "invoice": invoice.to_dict()}), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Invoice cancellation failed")
        return jsonify({"error": "Internal server error"}), 500
