from __future__ import annotations

from ..extensions import db
from textile_erp.numbers import dec_str
from textile_erp.time_utils import to_utc_z, to_iso_date


ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_IN_PROGRESS = "in_progress"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = [
    ORDER_STATUS_PENDING,
    ORDER_STATUS_IN_PROGRESS,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
]


class ProductionLog(db.Model):
    """
    One raw-material -> finished-good conversion event (append-only).

    Paired with exactly two StockTransaction rows referencing it: a negative
    production_input and a positive production_output.
    """
    __tablename__ = "production_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    production_date = db.Column(db.Date, nullable=False, index=True)
    center_id = db.Column(db.Integer, db.ForeignKey("production_centers.id"), nullable=False, index=True)

    input_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    input_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)
    input_qty = db.Column(db.Numeric(14, 3), nullable=False)

    output_product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    output_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False)
    output_qty = db.Column(db.Numeric(14, 3), nullable=False)

    recorded_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    center = db.relationship("ProductionCenter")
    input_product = db.relationship("Product", foreign_keys=[input_product_id])
    output_product = db.relationship("Product", foreign_keys=[output_product_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "production_date": to_iso_date(self.production_date),
            "center_id": self.center_id,
            "center_name": self.center.name if self.center else None,
            "input_product_id": self.input_product_id,
            "input_name": self.input_product.name if self.input_product else None,
            "input_warehouse_id": self.input_warehouse_id,
            "input_qty": dec_str(self.input_qty),
            "output_product_id": self.output_product_id,
            "output_name": self.output_product.name if self.output_product else None,
            "output_warehouse_id": self.output_warehouse_id,
            "output_qty": dec_str(self.output_qty),
            "recorded_by_user_id": self.recorded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class ProductionOrder(db.Model):
    """
    Production plan.

    LIFECYCLE:
    pending -> in_progress -> completed
    pending | in_progress -> cancelled
    completed and cancelled are terminal.

    Independent of ProductionLog: recording production does not advance an
    order, and an order can be completed without matching production.
    """
    __tablename__ = "production_orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)
    order_date = db.Column(db.Date, nullable=False)
    center_id = db.Column(db.Integer, db.ForeignKey("production_centers.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    planned_quantity = db.Column(db.Numeric(14, 3), nullable=False)
    actual_quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)
    notes = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)

    center = db.relationship("ProductionCenter")
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "order_date": to_iso_date(self.order_date),
            "center_id": self.center_id,
            "center_name": self.center.name if self.center else None,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "planned_quantity": dec_str(self.planned_quantity),
            "actual_quantity": dec_str(self.actual_quantity),
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
