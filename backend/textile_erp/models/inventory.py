from __future__ import annotations

from ..extensions import db
from textile_erp.numbers import dec_str
from textile_erp.time_utils import to_utc_z


PRODUCT_STATUS_ACTIVE = "active"
PRODUCT_STATUS_DISCONTINUED = "discontinued"

# Stock transaction types
TX_RECEIPT = "receipt"
TX_ADJUSTMENT = "adjustment"
TX_TRANSFER_IN = "transfer_in"
TX_TRANSFER_OUT = "transfer_out"
TX_PRODUCTION_INPUT = "production_input"
TX_PRODUCTION_OUTPUT = "production_output"
TX_SALE = "sale"
TX_SALE_RETURN = "sale_return"

STOCK_TRANSACTION_TYPES = [
    TX_RECEIPT,
    TX_ADJUSTMENT,
    TX_TRANSFER_IN,
    TX_TRANSFER_OUT,
    TX_PRODUCTION_INPUT,
    TX_PRODUCTION_OUTPUT,
    TX_SALE,
    TX_SALE_RETURN,
]


class Product(db.Model):
    """
    Product master data (yarn, fabric, finished garments).

    Products are soft-deleted (status='discontinued'), never hard-deleted,
    because inventory, invoice lines and production logs reference them.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_status_name", "status", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True, index=True)
    unit_of_measure = db.Column(db.String(16), nullable=False, default="pcs")

    standard_cost = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    standard_price = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    reorder_level = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=PRODUCT_STATUS_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "category": self.category,
            "unit_of_measure": self.unit_of_measure,
            "standard_cost": dec_str(self.standard_cost),
            "standard_price": dec_str(self.standard_price),
            "reorder_level": dec_str(self.reorder_level),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryPosition(db.Model):
    """
    Quantity on hand for one (warehouse, product) pair.

    Created on the first movement that references the pair and never
    deleted. Every change is paired with exactly one StockTransaction, so
    SUM(stock_transactions.quantity) for the pair equals quantity_on_hand.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("warehouse_id", "product_id", name="uq_inventory_warehouse_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_on_hand = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    warehouse = db.relationship("Warehouse")
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryPosition warehouse_id={self.warehouse_id} "
            f"product_id={self.product_id} qty={self.quantity_on_hand}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "warehouse_id": self.warehouse_id,
            "product_id": self.product_id,
            "quantity_on_hand": dec_str(self.quantity_on_hand),
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransaction(db.Model):
    """
    Append-only stock movement log (the inventory audit trail).

    Rows are written once and never updated or deleted. `quantity` is the
    signed delta applied to the (warehouse, product) position.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stocktx_warehouse_product", "warehouse_id", "product_id"),
        db.Index("ix_stocktx_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(db.Numeric(14, 3), nullable=False)

    # Transfers name the other side of the move
    counterpart_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True)

    # What caused the movement (invoice, production_log); null for manual moves
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(255), nullable=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse", foreign_keys=[warehouse_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "occurred_at": to_utc_z(self.occurred_at),
            "warehouse_id": self.warehouse_id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": dec_str(self.quantity),
            "counterpart_warehouse_id": self.counterpart_warehouse_id,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "note": self.note,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
