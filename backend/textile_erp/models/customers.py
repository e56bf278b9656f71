from __future__ import annotations

from ..extensions import db
from textile_erp.numbers import dec_str
from textile_erp.time_utils import to_utc_z


CUSTOMER_STATUS_ACTIVE = "active"
CUSTOMER_STATUS_INACTIVE = "inactive"


class Customer(db.Model):
    """
    Customer master data.

    External collaborator: maintained by CRM screens, referenced (never
    mutated) by invoices and credit records.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    customer_type = db.Column(db.String(32), nullable=False, default="retail")  # retail, wholesale, corporate
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    credit_limit = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=CUSTOMER_STATUS_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Customer id={self.id} code={self.code!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "customer_type": self.customer_type,
            "phone": self.phone,
            "address": self.address,
            "credit_limit": dec_str(self.credit_limit),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
