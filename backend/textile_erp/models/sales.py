from __future__ import annotations

from ..extensions import db
from textile_erp.numbers import dec_str
from textile_erp.time_utils import to_utc_z, to_iso_date


PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CREDIT = "credit"
PAYMENT_METHODS = [PAYMENT_METHOD_CASH, PAYMENT_METHOD_CREDIT]

INVOICE_STATUS_PAID = "paid"
INVOICE_STATUS_PENDING = "pending"
INVOICE_STATUS_PARTIAL = "partial"
INVOICE_STATUS_CANCELLED = "cancelled"

CREDIT_STATUS_PENDING = "pending"
CREDIT_STATUS_PARTIAL = "partial"
CREDIT_STATUS_PAID = "paid"
CREDIT_STATUS_CANCELLED = "cancelled"
OPEN_CREDIT_STATUSES = [CREDIT_STATUS_PENDING, CREDIT_STATUS_PARTIAL]


class SalesInvoice(db.Model):
    """
    Sales invoice header.

    Created atomically with its lines. paid_amount never exceeds
    total_amount, and status is derived from the two (paid iff
    paid_amount >= total_amount). For credit invoices paid_amount/status are
    kept equal to the linked CreditSale.
    """
    __tablename__ = "sales_invoices"
    __table_args__ = (
        db.Index("ix_sales_invoices_date", "invoice_date"),
        db.Index("ix_sales_invoices_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "INV-202602-0001"
    invoice_number = db.Column(db.String(32), nullable=False, unique=True)
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    payment_method = db.Column(db.String(16), nullable=False)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, index=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    cancelled_by_user_id = db.Column(db.Integer, nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    branch = db.relationship("Branch")
    lines = db.relationship("InvoiceLine", backref="invoice", lazy=True, order_by="InvoiceLine.id")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SalesInvoice id={self.id} number={self.invoice_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "invoice_date": to_utc_z(self.invoice_date),
            "branch_id": self.branch_id,
            "customer_id": self.customer_id,
            "payment_method": self.payment_method,
            "total_amount": dec_str(self.total_amount),
            "paid_amount": dec_str(self.paid_amount),
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "version_id": self.version_id,
        }


class InvoiceLine(db.Model):
    """Invoice line item. Immutable once created; line_total = quantity * unit_price."""
    __tablename__ = "invoice_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("sales_invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    line_total = db.Column(db.Numeric(14, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_code": self.product.code if self.product else None,
            "product_name": self.product.name if self.product else None,
            "quantity": dec_str(self.quantity),
            "unit_price": dec_str(self.unit_price),
            "line_total": dec_str(self.line_total),
        }


class CreditSale(db.Model):
    """
    Receivable opened for a credit invoice (1:1).

    total_amount mirrors the invoice. paid_amount always equals the sum of
    its CreditPayments and the parent invoice's paid_amount.
    """
    __tablename__ = "credit_sales"
    __table_args__ = (
        db.Index("ix_credit_sales_status_due", "status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("sales_invoices.id"), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    due_date = db.Column(db.Date, nullable=False)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=CREDIT_STATUS_PENDING)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    invoice = db.relationship("SalesInvoice", backref=db.backref("credit_sale", uselist=False))
    customer = db.relationship("Customer")
    payments = db.relationship("CreditPayment", backref="credit_sale", lazy=True, order_by="CreditPayment.id")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def balance_amount(self):
        return self.total_amount - self.paid_amount

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice.invoice_number if self.invoice else None,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "due_date": to_iso_date(self.due_date),
            "total_amount": dec_str(self.total_amount),
            "paid_amount": dec_str(self.paid_amount),
            "balance_amount": dec_str(self.balance_amount),
            "status": self.status,
            "version_id": self.version_id,
        }


class CreditPayment(db.Model):
    """Append-only payment record against a CreditSale."""
    __tablename__ = "credit_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    credit_id = db.Column(db.Integer, db.ForeignKey("credit_sales.id"), nullable=False, index=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)
    payment_reference = db.Column(db.String(128), nullable=False, default="")
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    recorded_by_user_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "credit_id": self.credit_id,
            "payment_date": to_utc_z(self.payment_date),
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "amount": dec_str(self.amount),
            "recorded_by_user_id": self.recorded_by_user_id,
        }
