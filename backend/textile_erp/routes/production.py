# backend/textile_erp/routes/production.py
"""
Production API routes: conversions, history, centers and production orders.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import ROLE_DIRECTOR, ROLE_OFFICER, current_user_id, require_auth, require_role
from ..errors import LedgerError, error_response
from ..extensions import db
from ..services import production_service
from ..validation import get_json_payload, parse_date, require_fields, to_int


production_bp = Blueprint("production", __name__, url_prefix="/api/production")


@production_bp.post("/record")
@require_role(ROLE_OFFICER, ROLE_DIRECTOR)
def record_production():
    """
    Record a raw material -> finished good conversion.

    Request body:
    {
        "center_id": int,
        "date": "YYYY-MM-DD" (optional, defaults to today),
        "input_product_id": int, "input_warehouse_id": int, "input_qty": number,
        "output_product_id": int, "output_warehouse_id": int, "output_qty": number
    }

    Returns:
        200: {message, production_id}
        400: Invalid request
        409: Insufficient raw material stock
    """
    try:
        data = get_json_payload()
        require_fields(
            data,
            "center_id",
            "input_product_id", "input_warehouse_id", "input_qty",
            "output_product_id", "output_warehouse_id", "output_qty",
        )

        log = production_service.record_production(
            center_id=to_int(data["center_id"], "center_id"),
            production_date=parse_date(data.get("date"), "date"),
            input_product_id=to_int(data["input_product_id"], "input_product_id"),
            input_warehouse_id=to_int(data["input_warehouse_id"], "input_warehouse_id"),
            input_qty=data["input_qty"],
            output_product_id=to_int(data["output_product_id"], "output_product_id"),
            output_warehouse_id=to_int(data["output_warehouse_id"], "output_warehouse_id"),
            output_qty=data["output_qty"],
            user_id=current_user_id(),
        )

        current_app.logger.info(
            "Production %s recorded: center=%s in=%sx%s out=%sx%s",
            log.id, log.center_id, log.input_product_id, log.input_qty,
            log.output_product_id, log.output_qty,
        )
        return jsonify({"message": "Production Recorded Successfully", "production_id": log.id}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Production recording failed")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.get("/history")
@require_auth
def production_history():
    try:
        limit = to_int(request.args.get("limit"), "limit", required=False) or 50
        logs = production_service.list_production_history(limit=limit)
        return jsonify([log.to_dict() for log in logs]), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Production history query failed")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.get("/centers")
@require_auth
def list_centers():
    try:
        return jsonify([c.to_dict() for c in production_service.list_centers()]), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Production center listing failed")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.get("/orders")
@require_auth
def list_orders():
    try:
        orders = production_service.list_orders(status=request.args.get("status"))
        return jsonify([o.to_dict() for o in orders]), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Production order listing failed")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.post("/orders")
@require_role(ROLE_OFFICER, ROLE_DIRECTOR)
def create_order():
    """
    Create a production order (status 'pending').

    Request body:
    {
        "center_id": int,
        "product_id": int,
        "planned_quantity": number,
        "date": "YYYY-MM-DD" (optional),
        "notes": str (optional)
    }
    """
    try:
        data = get_json_payload()
        require_fields(data, "center_id", "product_id", "planned_quantity")

        order = production_service.create_order(
            center_id=to_int(data["center_id"], "center_id"),
            product_id=to_int(data["product_id"], "product_id"),
            planned_quantity=data["planned_quantity"],
            order_date=parse_date(data.get("date"), "date"),
            notes=data.get("notes"),
            user_id=current_user_id(),
        )

        current_app.logger.info("Production order %s created", order.order_number)
        return jsonify({"message": "Production Order Created Successfully", "order": order.to_dict()}), 201

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Production order creation failed")
        return jsonify({"error": "Internal server error"}), 500


@production_bp.patch("/orders/<int:order_id>/status")
@require_role(ROLE_OFFICER, ROLE_DIRECTOR)
def update_order_status(order_id: int):
    """
    Request body: {"status": "in_progress" | "completed" | "cancelled", "actual_quantity": number (optional)}

    Returns:
        200: Updated order
        404: Order not found
        409: Transition not allowed
    """
    try:
        data = get_json_payload()
        require_fields(data, "status")

        order = production_service.update_order_status(
            order_id,
            status=data["status"],
            actual_quantity=data.get("actual_quantity"),
        )

        current_app.logger.info("Production order %s -> %s", order.order_number, order.status)
        return jsonify({"message": "Status Updated", "order": order.to_dict()}), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Production order status update failed")
        return jsonify({"error": "Internal server error"}), 500
