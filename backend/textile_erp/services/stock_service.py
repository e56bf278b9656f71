# Overview: Stock Movement Engine; adjusts and transfers inventory with an append-only audit trail.

# backend/textile_erp/services/stock_service.py

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from sqlalchemy import func

from ..errors import InsufficientStockError, ValidationError
from ..extensions import db
from ..models import InventoryPosition, Product, StockTransaction, Warehouse
from ..models.inventory import (
    TX_ADJUSTMENT,
    TX_RECEIPT,
    TX_TRANSFER_IN,
    TX_TRANSFER_OUT,
)
from ..numbers import dec, exact_quantity, money, quantity as to_quantity
from textile_erp.time_utils import utcnow
from .concurrency import atomic, lock_for_update
"""
Stock invariants (authoritative)

Inventory model:
- InventoryPosition holds quantity_on_hand per (warehouse, product).
- Every change to a position appends exactly one StockTransaction whose
  signed quantity equals the delta, in the same DB transaction.
- Hence SUM(stock_transactions.quantity) per pair == quantity_on_hand.
- StockTransaction rows are append-only (never updated or deleted).

Negative stock:
- On-hand quantity may never go negative. Every deduction (adjust out,
  transfer, invoice line, production input) is checked against the locked
  position and raises InsufficientStockError when it would overdraw.

Locking:
- Positions are read with SELECT ... FOR UPDATE before mutation.
- Transfers lock both positions in ascending warehouse order.
"""


DIRECTION_IN = "in"
DIRECTION_OUT = "out"

# Legacy stock screens send transaction types instead of directions
DIRECTION_ALIASES = {
    DIRECTION_IN: DIRECTION_IN,
    DIRECTION_OUT: DIRECTION_OUT,
    TX_RECEIPT: DIRECTION_IN,
    TX_ADJUSTMENT: DIRECTION_OUT,
}


def normalize_direction(value) -> str:
    direction = DIRECTION_ALIASES.get(str(value or "").strip().lower())
    if direction is None:
        raise ValidationError(
            f"Invalid direction: {value}. Must be one of {sorted(DIRECTION_ALIASES)}"
        )
    return direction


def positive_quantity(value, field: str = "quantity") -> Decimal:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    try:
        qty = exact_quantity(value)
    except (ValueError, ArithmeticError) as exc:
        raise ValidationError(f"{field} is invalid: {exc}")
    if qty <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return qty


def ensure_product(product_id) -> Product:
    if not product_id:
        raise ValidationError("product_id is required")
    product = db.session.get(Product, product_id)
    if product is None:
        raise ValidationError(f"Product {product_id} not found")
    return product


def ensure_warehouse(warehouse_id, field: str = "warehouse_id") -> Warehouse:
    if not warehouse_id:
        raise ValidationError(f"{field} is required")
    warehouse = db.session.get(Warehouse, warehouse_id)
    if warehouse is None:
        raise ValidationError(f"Warehouse {warehouse_id} not found")
    return warehouse


def _lock_position(warehouse_id: int, product_id: int) -> InventoryPosition | None:
    query = db.session.query(InventoryPosition).filter_by(
        warehouse_id=warehouse_id,
        product_id=product_id,
    )
    return lock_for_update(query).first()


def _get_or_create_position(warehouse_id: int, product_id: int) -> InventoryPosition:
    position = _lock_position(warehouse_id, product_id)
    if position is None:
        position = InventoryPosition(
            warehouse_id=warehouse_id,
            product_id=product_id,
            quantity_on_hand=Decimal("0"),
        )
        db.session.add(position)
        # A concurrent creator makes this flush raise IntegrityError; the
        # enclosing unit of work is then retried and finds the row.
        db.session.flush()
    return position


def apply_movement(
    *,
    warehouse_id: int,
    product_id: int,
    delta: Decimal,
    tx_type: str,
    occurred_at: datetime | None = None,
    counterpart_warehouse_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    note: str | None = None,
    user_id: int | None = None,
) -> StockTransaction:
    """
    Core movement primitive: apply a signed delta to one position and append
    the matching StockTransaction.

    Runs inside the caller's unit of work; never commits. Creates the
    position on first inbound movement. Outbound movements require an
    existing position holding at least -delta.
    """
    delta = to_quantity(delta)
    if delta == 0:
        raise ValidationError("movement quantity must be non-zero")

    if delta < 0:
        position = _lock_position(warehouse_id, product_id)
        on_hand = dec(position.quantity_on_hand) if position is not None else Decimal("0")
        if position is None or on_hand + delta < 0:
            raise InsufficientStockError(
                f"Insufficient stock for product {product_id} in warehouse {warehouse_id}. "
                f"On-hand: {on_hand}, requested: {-delta}",
                product_id=product_id,
                warehouse_id=warehouse_id,
                on_hand=on_hand,
                requested=-delta,
            )
    else:
        position = _get_or_create_position(warehouse_id, product_id)

    position.quantity_on_hand = to_quantity(dec(position.quantity_on_hand) + delta)

    tx = StockTransaction(
        occurred_at=occurred_at or utcnow(),
        warehouse_id=warehouse_id,
        product_id=product_id,
        type=tx_type,
        quantity=delta,
        counterpart_warehouse_id=counterpart_warehouse_id,
        reference_type=reference_type,
        reference_id=reference_id,
        note=note,
        created_by_user_id=user_id,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def add_stock(*, warehouse_id: int, product_id: int, quantity: Decimal, tx_type: str, **kwargs) -> StockTransaction:
    """The "in" primitive."""
    return apply_movement(
        warehouse_id=warehouse_id,
        product_id=product_id,
        delta=to_quantity(quantity),
        tx_type=tx_type,
        **kwargs,
    )


def deduct_stock(*, warehouse_id: int, product_id: int, quantity: Decimal, tx_type: str, **kwargs) -> StockTransaction:
    """The "out" primitive; raises InsufficientStockError on overdraw."""
    return apply_movement(
        warehouse_id=warehouse_id,
        product_id=product_id,
        delta=-to_quantity(quantity),
        tx_type=tx_type,
        **kwargs,
    )


def adjust_stock(
    *,
    product_id: int,
    warehouse_id: int,
    quantity,
    direction: str,
    note: str | None = None,
    user_id: int | None = None,
) -> StockTransaction:
    """
    Add (direction='in', logged as receipt) or remove (direction='out',
    logged as adjustment) stock at one warehouse.

    Raises:
        ValidationError: quantity <= 0, unknown direction, product or
            warehouse missing
        InsufficientStockError: an 'out' adjustment would overdraw the position
    """
    qty = positive_quantity(quantity)
    normalized = normalize_direction(direction)

    def _op():
        ensure_product(product_id)
        ensure_warehouse(warehouse_id)

        if normalized == DIRECTION_IN:
            return add_stock(
                warehouse_id=warehouse_id,
                product_id=product_id,
                quantity=qty,
                tx_type=TX_RECEIPT,
                note=note,
                user_id=user_id,
            )
        return deduct_stock(
            warehouse_id=warehouse_id,
            product_id=product_id,
            quantity=qty,
            tx_type=TX_ADJUSTMENT,
            note=note,
            user_id=user_id,
        )

    return atomic(_op)


def transfer_stock(
    *,
    product_id: int,
    from_warehouse_id: int,
    to_warehouse_id: int,
    quantity,
    note: str | None = None,
    user_id: int | None = None,
) -> tuple[StockTransaction, StockTransaction]:
    """
    Move stock of one product between two warehouses.

    Writes a transfer_out row (-quantity) at the source and a transfer_in row
    (+quantity) at the destination; each names the other warehouse.

    Raises:
        ValidationError: same warehouse on both sides, bad quantity, unknown refs
        InsufficientStockError: source position absent or holding less than quantity
    """
    qty = positive_quantity(quantity)
    if from_warehouse_id == to_warehouse_id:
        raise ValidationError("Source and destination warehouses cannot be the same")

    def _op():
        ensure_product(product_id)
        ensure_warehouse(from_warehouse_id, "from_warehouse_id")
        ensure_warehouse(to_warehouse_id, "to_warehouse_id")

        # Lock both sides in a stable order so two opposite transfers cannot deadlock
        for wid in sorted((from_warehouse_id, to_warehouse_id)):
            _lock_position(wid, product_id)

        occurred_at = utcnow()
        out_tx = deduct_stock(
            warehouse_id=from_warehouse_id,
            product_id=product_id,
            quantity=qty,
            tx_type=TX_TRANSFER_OUT,
            occurred_at=occurred_at,
            counterpart_warehouse_id=to_warehouse_id,
            note=note,
            user_id=user_id,
        )
        in_tx = add_stock(
            warehouse_id=to_warehouse_id,
            product_id=product_id,
            quantity=qty,
            tx_type=TX_TRANSFER_IN,
            occurred_at=occurred_at,
            counterpart_warehouse_id=from_warehouse_id,
            note=note,
            user_id=user_id,
        )
        return out_tx, in_tx

    return atomic(_op)


# =============================================================================
# READ SIDE
# =============================================================================

def get_position(warehouse_id: int, product_id: int) -> InventoryPosition | None:
    return db.session.query(InventoryPosition).filter_by(
        warehouse_id=warehouse_id,
        product_id=product_id,
    ).first()


def get_quantity_on_hand(warehouse_id: int, product_id: int) -> Decimal:
    position = get_position(warehouse_id, product_id)
    return dec(position.quantity_on_hand) if position is not None else Decimal("0")


def stock_status(quantity_on_hand, reorder_level) -> str:
    qty = dec(quantity_on_hand)
    if qty <= 0:
        return "Out of Stock"
    if qty <= dec(reorder_level):
        return "Low Stock"
    return "Adequate"


def list_stock(*, warehouse_id: int | None = None, product_id: int | None = None) -> list[dict]:
    """Current stock per position; low stock first, then alphabetical."""
    q = (
        db.session.query(InventoryPosition, Product, Warehouse)
        .join(Product, InventoryPosition.product_id == Product.id)
        .join(Warehouse, InventoryPosition.warehouse_id == Warehouse.id)
    )
    if warehouse_id is not None:
        q = q.filter(InventoryPosition.warehouse_id == warehouse_id)
    if product_id is not None:
        q = q.filter(InventoryPosition.product_id == product_id)

    rows = []
    for position, product, warehouse in q.all():
        status = stock_status(position.quantity_on_hand, product.reorder_level)
        rows.append({
            "inventory_id": position.id,
            "warehouse_id": warehouse.id,
            "warehouse_name": warehouse.name,
            "product_id": product.id,
            "product_code": product.code,
            "product_name": product.name,
            "category": product.category,
            "unit_of_measure": product.unit_of_measure,
            "quantity_on_hand": str(dec(position.quantity_on_hand)),
            "reorder_level": str(dec(product.reorder_level)),
            "standard_cost": str(money(product.standard_cost)),
            "stock_value": str(money(dec(position.quantity_on_hand) * dec(product.standard_cost))),
            "stock_status": status,
        })

    rows.sort(key=lambda r: (r["stock_status"] != "Low Stock", r["product_name"]))
    return rows


def stock_valuation(*, warehouse_id: int | None = None) -> dict:
    """
    Stock valued at standard cost (quantity_on_hand x standard_cost).

    Returns:
        {"items": positions sorted by stock_value, largest first,
         "total_value": sum over the returned positions}
    """
    rows = list_stock(warehouse_id=warehouse_id)
    rows.sort(key=lambda r: (-Decimal(r["stock_value"]), r["product_name"]))
    total = sum((Decimal(r["stock_value"]) for r in rows), Decimal("0.00"))
    return {"items": rows, "total_value": str(money(total))}


def list_stock_history(
    *,
    warehouse_id: int | None = None,
    product_id: int | None = None,
    tx_type: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 100,
) -> list[StockTransaction]:
    """Most recent movements first. Date bounds are inclusive."""
    q = db.session.query(StockTransaction)
    if warehouse_id is not None:
        q = q.filter(StockTransaction.warehouse_id == warehouse_id)
    if product_id is not None:
        q = q.filter(StockTransaction.product_id == product_id)
    if tx_type:
        q = q.filter(StockTransaction.type == tx_type)
    if date_from is not None:
        q = q.filter(StockTransaction.occurred_at >= datetime.combine(date_from, time.min))
    if date_to is not None:
        q = q.filter(StockTransaction.occurred_at <= datetime.combine(date_to, time.max))

    return q.order_by(
        StockTransaction.occurred_at.desc(),
        StockTransaction.id.desc(),
    ).limit(limit).all()


def list_warehouses() -> list[Warehouse]:
    return db.session.query(Warehouse).order_by(Warehouse.name).all()


def reconcile_positions() -> list[dict]:
    """
    Compare every position against its ledger.

    Returns one entry per (warehouse, product) pair whose SUM(quantity) over
    stock_transactions differs from quantity_on_hand, including ledger pairs
    with no position row. An empty list means the books reconcile.
    """
    ledger = {
        (wid, pid): to_quantity(total)
        for wid, pid, total in db.session.query(
            StockTransaction.warehouse_id,
            StockTransaction.product_id,
            func.sum(StockTransaction.quantity),
        ).group_by(StockTransaction.warehouse_id, StockTransaction.product_id).all()
    }
    positions = {
        (p.warehouse_id, p.product_id): to_quantity(p.quantity_on_hand)
        for p in db.session.query(InventoryPosition).all()
    }

    mismatches = []
    for key in sorted(set(ledger) | set(positions)):
        ledger_qty = ledger.get(key, Decimal("0.000"))
        position_qty = positions.get(key, Decimal("0.000"))
        if ledger_qty != position_qty:
            mismatches.append({
                "warehouse_id": key[0],
                "product_id": key[1],
                "ledger_quantity": str(ledger_qty),
                "quantity_on_hand": str(position_qty),
            })
    return mismatches
