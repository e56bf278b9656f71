# Overview: Production Conversion Engine; converts raw material to finished goods and tracks production orders.

"""
Production Service

Two independent workflows:

1. record_production(): one conversion event. Deducts the input product from
   its warehouse, adds the output product to its warehouse and writes a
   ProductionLog; all three or nothing.

2. Production orders: a plan with a caller-driven lifecycle
       pending -> in_progress -> completed
       pending | in_progress -> cancelled
   Recording production never advances an order and completing an order
   never moves stock.
"""

from __future__ import annotations

from datetime import date

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import ProductionCenter, ProductionLog, ProductionOrder
from ..models.inventory import TX_PRODUCTION_INPUT, TX_PRODUCTION_OUTPUT
from ..models.production import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_IN_PROGRESS,
    ORDER_STATUS_PENDING,
    ORDER_STATUSES,
)
from ..numbers import exact_quantity, quantity as to_quantity
from textile_erp.time_utils import today, utcnow
from .concurrency import atomic, lock_for_update
from .document_service import next_order_number
from .stock_service import add_stock, deduct_stock, ensure_product, ensure_warehouse, positive_quantity


REFERENCE_TYPE_PRODUCTION = "production_log"

# Allowed next states per current state; completed/cancelled are terminal.
ORDER_TRANSITIONS = {
    ORDER_STATUS_PENDING: {ORDER_STATUS_IN_PROGRESS, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_IN_PROGRESS: {ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED},
    ORDER_STATUS_COMPLETED: set(),
    ORDER_STATUS_CANCELLED: set(),
}


def ensure_center(center_id) -> ProductionCenter:
    if not center_id:
        raise ValidationError("center_id is required")
    center = db.session.get(ProductionCenter, center_id)
    if center is None:
        raise ValidationError(f"Production center {center_id} not found")
    return center


def record_production(
    *,
    center_id: int,
    production_date: date | None,
    input_product_id: int,
    input_warehouse_id: int,
    input_qty,
    output_product_id: int,
    output_warehouse_id: int,
    output_qty,
    user_id: int | None = None,
) -> ProductionLog:
    """
    Record one conversion of raw material into finished goods.

    Writes exactly one ProductionLog plus two StockTransactions that reference
    it: production_input (-input_qty) and production_output (+output_qty).

    Raises:
        ValidationError: non-positive quantities, unknown center/product/warehouse
        InsufficientStockError: input position absent or holding less than input_qty
    """
    in_qty = positive_quantity(input_qty, "input_qty")
    out_qty = positive_quantity(output_qty, "output_qty")
    log_date = production_date or today()

    def _op():
        ensure_center(center_id)
        ensure_product(input_product_id)
        ensure_product(output_product_id)
        ensure_warehouse(input_warehouse_id, "input_warehouse_id")
        ensure_warehouse(output_warehouse_id, "output_warehouse_id")

        log = ProductionLog(
            production_date=log_date,
            center_id=center_id,
            input_product_id=input_product_id,
            input_warehouse_id=input_warehouse_id,
            input_qty=in_qty,
            output_product_id=output_product_id,
            output_warehouse_id=output_warehouse_id,
            output_qty=out_qty,
            recorded_by_user_id=user_id,
        )
        db.session.add(log)
        db.session.flush()

        occurred_at = utcnow()
        deduct_stock(
            warehouse_id=input_warehouse_id,
            product_id=input_product_id,
            quantity=in_qty,
            tx_type=TX_PRODUCTION_INPUT,
            occurred_at=occurred_at,
            reference_type=REFERENCE_TYPE_PRODUCTION,
            reference_id=log.id,
            user_id=user_id,
        )
        add_stock(
            warehouse_id=output_warehouse_id,
            product_id=output_product_id,
            quantity=out_qty,
            tx_type=TX_PRODUCTION_OUTPUT,
            occurred_at=occurred_at,
            reference_type=REFERENCE_TYPE_PRODUCTION,
            reference_id=log.id,
            user_id=user_id,
        )
        return log

    return atomic(_op)


def list_production_history(limit: int = 50) -> list[ProductionLog]:
    return (
        db.session.query(ProductionLog)
        .order_by(ProductionLog.production_date.desc(), ProductionLog.id.desc())
        .limit(limit)
        .all()
    )


def list_centers(active_only: bool = False) -> list[ProductionCenter]:
    q = db.session.query(ProductionCenter)
    if active_only:
        q = q.filter(ProductionCenter.is_active.is_(True))
    return q.order_by(ProductionCenter.name).all()


# =============================================================================
# PRODUCTION ORDERS
# =============================================================================

def create_order(
    *,
    center_id: int,
    product_id: int,
    planned_quantity,
    order_date: date | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> ProductionOrder:
    """Create a pending production order numbered PO-YYYYMMDD-NNNNN."""
    planned = positive_quantity(planned_quantity, "planned_quantity")
    when = order_date or today()

    def _op():
        ensure_center(center_id)
        ensure_product(product_id)

        order = ProductionOrder(
            order_number=next_order_number(when),
            order_date=when,
            center_id=center_id,
            product_id=product_id,
            planned_quantity=planned,
            actual_quantity=to_quantity(0),
            status=ORDER_STATUS_PENDING,
            notes=notes,
            created_by_user_id=user_id,
        )
        db.session.add(order)
        db.session.flush()
        return order

    return atomic(_op)


def get_order(order_id: int) -> ProductionOrder:
    order = db.session.get(ProductionOrder, order_id)
    if order is None:
        raise NotFoundError(f"Production order {order_id} not found")
    return order


def list_orders(status: str | None = None) -> list[ProductionOrder]:
    q = db.session.query(ProductionOrder)
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status: {status}. Must be one of {ORDER_STATUSES}")
        q = q.filter(ProductionOrder.status == status)
    return q.order_by(ProductionOrder.id.desc()).all()


def update_order_status(
    order_id: int,
    *,
    status: str,
    actual_quantity=None,
) -> ProductionOrder:
    """
    Move an order along its lifecycle.

    Raises:
        ValidationError: unknown status or bad actual_quantity
        NotFoundError: order does not exist
        ConflictError: transition not allowed from the current state
    """
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {status}. Must be one of {ORDER_STATUSES}")

    actual = None
    if actual_quantity is not None and actual_quantity != "":
        try:
            actual = exact_quantity(actual_quantity)
        except (ValueError, ArithmeticError) as exc:
            raise ValidationError(f"actual_quantity is invalid: {exc}")
        if actual < 0:
            raise ValidationError("actual_quantity cannot be negative")

    def _op():
        order = lock_for_update(
            db.session.query(ProductionOrder).filter_by(id=order_id)
        ).first()
        if order is None:
            raise NotFoundError(f"Production order {order_id} not found")

        if status not in ORDER_TRANSITIONS[order.status]:
            raise ConflictError(
                f"Cannot move production order {order.order_number} from {order.status} to {status}"
            )

        order.status = status
        if actual is not None:
            order.actual_quantity = actual
        db.session.flush()
        return order

    return atomic(_op)
