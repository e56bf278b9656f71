# backend/textile_erp/routes/inventory.py
"""
Stock movement API routes: adjust, transfer, stock levels, movement history.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import (
    ROLE_ACCOUNTANT,
    ROLE_DIRECTOR,
    ROLE_OFFICER,
    current_user_id,
    require_auth,
    require_role,
)
from ..errors import LedgerError, ValidationError, error_response
from ..extensions import db
from ..models.inventory import STOCK_TRANSACTION_TYPES
from ..services import stock_service
from ..validation import get_json_payload, parse_date, require_fields, to_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _internal_error(action: str):
    db.session.rollback()
    current_app.logger.exception("%s failed", action)
    return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/adjust")
@require_role(ROLE_OFFICER, ROLE_DIRECTOR)
def adjust_stock():
    """
    Add or remove stock at one warehouse.

    Request body:
    {
        "product_id": int,
        "warehouse_id": int,
        "quantity": number (> 0),
        "direction": "in" | "out"   (or legacy "type": "receipt" | "adjustment"),
        "note": str (optional)
    }

    Returns:
        200: {message, position}
        400: Invalid request
        409: Would take stock below zero
    """
    try:
        data = get_json_payload()
        require_fields(data, "product_id", "warehouse_id", "quantity")
        direction = data.get("direction") or data.get("type")
        if not direction:
            raise ValidationError("Missing required fields: direction")

        product_id = to_int(data["product_id"], "product_id")
        warehouse_id = to_int(data["warehouse_id"], "warehouse_id")

        tx = stock_service.adjust_stock(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=data["quantity"],
            direction=direction,
            note=data.get("note") or data.get("notes"),
            user_id=current_user_id(),
        )
        position = stock_service.get_position(warehouse_id, product_id)

        current_app.logger.info(
            "Stock %s: product=%s warehouse=%s qty=%s by user=%s",
            tx.type, product_id, warehouse_id, tx.quantity, current_user_id(),
        )
        return jsonify({
            "message": "Stock updated successfully",
            "transaction": tx.to_dict(),
            "position": position.to_dict() if position else None,
        }), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Stock adjustment")


@inventory_bp.post("/transfer")
@require_role(ROLE_OFFICER, ROLE_DIRECTOR)
def transfer_stock():
    """
    Move stock between warehouses.

    Request body:
    {
        "product_id": int,
        "from_warehouse_id": int,
        "to_warehouse_id": int,
        "quantity": number (> 0),
        "note": str (optional)
    }
    """
    try:
        data = get_json_payload()
        require_fields(data, "product_id", "from_warehouse_id", "to_warehouse_id", "quantity")

        out_tx, in_tx = stock_service.transfer_stock(
            product_id=to_int(data["product_id"], "product_id"),
            from_warehouse_id=to_int(data["from_warehouse_id"], "from_warehouse_id"),
            to_warehouse_id=to_int(data["to_warehouse_id"], "to_warehouse_id"),
            quantity=data["quantity"],
            note=data.get("note") or data.get("notes"),
            user_id=current_user_id(),
        )

        current_app.logger.info(
            "Stock transfer: product=%s %s -> %s qty=%s",
            in_tx.product_id, out_tx.warehouse_id, in_tx.warehouse_id, in_tx.quantity,
        )
        return jsonify({
            "message": "Transfer successful",
            "transactions": [out_tx.to_dict(), in_tx.to_dict()],
        }), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Stock transfer")


@inventory_bp.get("/stock")
@require_auth
def list_stock():
    """Current stock levels; low-stock items first. Optional ?warehouse_id=&product_id=."""
    try:
        rows = stock_service.list_stock(
            warehouse_id=to_int(request.args.get("warehouse_id"), "warehouse_id", required=False),
            product_id=to_int(request.args.get("product_id"), "product_id", required=False),
        )
        return jsonify(rows), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Stock listing")


@inventory_bp.get("/history")
@require_auth
def stock_history():
    """
    Stock movement log, newest first.

    Query params: warehouse_id, product_id, type, from, to (YYYY-MM-DD), limit (default 100)
    """
    try:
        tx_type = request.args.get("type")
        if tx_type and tx_type not in STOCK_TRANSACTION_TYPES:
            raise ValidationError(f"Invalid type: {tx_type}. Must be one of {STOCK_TRANSACTION_TYPES}")

        limit = to_int(request.args.get("limit"), "limit", required=False) or 100
        if limit < 1 or limit > 1000:
            raise ValidationError("limit must be between 1 and 1000")

        rows = stock_service.list_stock_history(
            warehouse_id=to_int(request.args.get("warehouse_id"), "warehouse_id", required=False),
            product_id=to_int(request.args.get("product_id"), "product_id", required=False),
            tx_type=tx_type,
            date_from=parse_date(request.args.get("from"), "from"),
            date_to=parse_date(request.args.get("to"), "to"),
            limit=limit,
        )

        result = []
        for tx in rows:
            item = tx.to_dict()
            item["product_code"] = tx.product.code if tx.product else None
            item["product_name"] = tx.product.name if tx.product else None
            item["warehouse_name"] = tx.warehouse.name if tx.warehouse else None
            result.append(item)
        return jsonify(result), 200

    except LedgerError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Stock history query")


@inventory_bp.get("/warehouses")
@require_auth
def list_warehouses():
    try:
        return jsonify([w.to_dict() for w in stock_service.list_warehouses()]), 200
    except Exception:
        return _internal_error("Warehouse listing")


@inventory_bp.get("/valuation")
@require_role(ROLE_ACCOUNTANT, ROLE_DIRECTOR)
def stock_valuation():
    """Stock valued at standard cost, highest value first. Optional ?warehouse_id=."""
    try:
        report = stock_service.stock_valuation(
            warehouse_id=to_int(request.args.get("warehouse_id"), "warehouse_id", required=False),
        )
        return jsonify(report), 200
    except LedgerError as e:
        return error_response(e)
    except Exception:
        return _internal_error("Stock valuation")
