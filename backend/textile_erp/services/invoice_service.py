# Overview: Sales Invoice Issuer; creates invoices with their lines, stock deductions and credit entries.

"""
Sales Invoice Service

An invoice is issued as one unit of work:
- header (number allocated from the INVOICE sequence)
- one InvoiceLine per item, each deducting stock (type 'sale')
- a CreditSale when the invoice is sold on credit

Either all of it persists or none of it does. Caller-supplied prices are
trusted; they are not checked against Product.standard_price.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from flask import current_app

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Branch, CreditSale, Customer, InvoiceLine, SalesInvoice, StockTransaction
from ..models.inventory import TX_SALE, TX_SALE_RETURN
from ..models.sales import (
    CREDIT_STATUS_CANCELLED,
    CREDIT_STATUS_PENDING,
    INVOICE_STATUS_CANCELLED,
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_PENDING,
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_CREDIT,
    PAYMENT_METHODS,
)
from ..numbers import dec, exact_money, exact_quantity, money
from textile_erp.time_utils import utcnow
from .concurrency import atomic, lock_for_update
from .document_service import next_invoice_number
from .stock_service import add_stock, deduct_stock, ensure_product, ensure_warehouse


REFERENCE_TYPE_INVOICE = "invoice"


def _normalize_items(items) -> list[dict]:
    if not items or not isinstance(items, (list, tuple)):
        raise ValidationError("Invoice must have at least one item")

    normalized = []
    for idx, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {idx} must be an object")

        product_id = item.get("product_id")
        if not product_id:
            raise ValidationError(f"Item {idx}: product_id is required")

        raw_price = item.get("price", item.get("unit_price"))
        if raw_price is None or raw_price == "":
            raise ValidationError(f"Item {idx}: price is required")

        try:
            qty = exact_quantity(item.get("quantity"))
            price = exact_money(raw_price)
        except (ValueError, ArithmeticError) as exc:
            raise ValidationError(f"Item {idx}: invalid quantity or price: {exc}")

        if qty <= 0:
            raise ValidationError(f"Item {idx}: quantity must be greater than zero")
        if price < 0:
            raise ValidationError(f"Item {idx}: price cannot be negative")

        normalized.append({
            "product_id": product_id,
            "quantity": qty,
            "unit_price": price,
            "line_total": money(qty * price),
        })
    return normalized


def create_invoice(
    *,
    customer_id: int,
    branch_id: int,
    payment_method: str,
    items: list[dict],
    user_id: int | None = None,
    warehouse_id: int | None = None,
) -> SalesInvoice:
    """
    Issue a sales invoice.

    Args:
        customer_id: Buyer
        branch_id: Issuing branch
        payment_method: 'cash' (settled at once) or 'credit' (opens a receivable)
        items: [{product_id, quantity, price}]
        user_id: Issuing user
        warehouse_id: Stock source; defaults to DEFAULT_WAREHOUSE_ID

    Returns:
        The committed SalesInvoice (id and invoice_number populated)

    Raises:
        ValidationError: empty items, bad quantity/price, unknown refs or method
        InsufficientStockError: a line would overdraw the source warehouse
        ConflictError / InternalError: datastore failure after retries
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {payment_method}. Must be one of {PAYMENT_METHODS}")
    if not customer_id:
        raise ValidationError("customer_id is required")
    if not branch_id:
        raise ValidationError("branch_id is required")

    lines = _normalize_items(items)
    total = money(sum((line["line_total"] for line in lines), Decimal("0")))
    source_warehouse_id = warehouse_id or current_app.config["DEFAULT_WAREHOUSE_ID"]
    term_days = int(current_app.config.get("CREDIT_TERM_DAYS", 30))

    def _op():
        if db.session.get(Customer, customer_id) is None:
            raise ValidationError(f"Customer {customer_id} not found")
        if db.session.get(Branch, branch_id) is None:
            raise ValidationError(f"Branch {branch_id} not found")
        ensure_warehouse(source_warehouse_id)

        issued_at = utcnow()
        is_cash = payment_method == PAYMENT_METHOD_CASH

        invoice = SalesInvoice(
            invoice_number=next_invoice_number(issued_at),
            invoice_date=issued_at,
            branch_id=branch_id,
            customer_id=customer_id,
            payment_method=payment_method,
            total_amount=total,
            paid_amount=total if is_cash else Decimal("0.00"),
            status=INVOICE_STATUS_PAID if is_cash else INVOICE_STATUS_PENDING,
            created_by_user_id=user_id,
        )
        db.session.add(invoice)
        db.session.flush()

        for line in lines:
            ensure_product(line["product_id"])
            db.session.add(InvoiceLine(
                invoice_id=invoice.id,
                product_id=line["product_id"],
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                line_total=line["line_total"],
            ))
            deduct_stock(
                warehouse_id=source_warehouse_id,
                product_id=line["product_id"],
                quantity=line["quantity"],
                tx_type=TX_SALE,
                occurred_at=issued_at,
                reference_type=REFERENCE_TYPE_INVOICE,
                reference_id=invoice.id,
                note=invoice.invoice_number,
                user_id=user_id,
            )

        if payment_method == PAYMENT_METHOD_CREDIT:
            db.session.add(CreditSale(
                invoice_id=invoice.id,
                customer_id=customer_id,
                due_date=issued_at.date() + timedelta(days=term_days),
                total_amount=total,
                paid_amount=Decimal("0.00"),
                status=CREDIT_STATUS_PENDING,
            ))

        db.session.flush()
        return invoice

    return atomic(_op)


def get_invoice(invoice_id: int) -> SalesInvoice:
    invoice = db.session.get(SalesInvoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(
    *,
    start_date: date | None = None,
    end_date: date | None = None,
    customer_id: int | None = None,
    status: str | None = None,
    limit: int = 200,
) -> list[SalesInvoice]:
    """Newest first. Date bounds are inclusive calendar days."""
    q = db.session.query(SalesInvoice)
    if start_date is not None:
        q = q.filter(SalesInvoice.invoice_date >= datetime.combine(start_date, time.min))
    if end_date is not None:
        q = q.filter(SalesInvoice.invoice_date <= datetime.combine(end_date, time.max))
    if customer_id is not None:
        q = q.filter(SalesInvoice.customer_id == customer_id)
    if status:
        q = q.filter(SalesInvoice.status == status)
    return q.order_by(SalesInvoice.invoice_date.desc(), SalesInvoice.id.desc()).limit(limit).all()


def cancel_invoice(invoice_id: int, *, user_id: int | None = None) -> SalesInvoice:
    """
    Cancel an invoice and put its stock back.

    Every 'sale' movement the invoice made is reversed with a 'sale_return'
    row at the same warehouse, and its CreditSale (if any) is cancelled.
    Invoices are never deleted.

    Raises:
        NotFoundError: unknown invoice
        ConflictError: already cancelled, or a credit payment was recorded
    """
    def _op():
        invoice = lock_for_update(
            db.session.query(SalesInvoice).filter_by(id=invoice_id)
        ).first()
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.status == INVOICE_STATUS_CANCELLED:
            raise ConflictError(f"Invoice {invoice.invoice_number} is already cancelled")

        credit = lock_for_update(
            db.session.query(CreditSale).filter_by(invoice_id=invoice.id)
        ).first()
        if credit is not None:
            if credit.payments or dec(credit.paid_amount) > 0:
                raise ConflictError(
                    f"Invoice {invoice.invoice_number} has recorded payments and cannot be cancelled"
                )
            credit.status = CREDIT_STATUS_CANCELLED

        sale_moves = db.session.query(StockTransaction).filter_by(
            reference_type=REFERENCE_TYPE_INVOICE,
            reference_id=invoice.id,
            type=TX_SALE,
        ).order_by(StockTransaction.id).all()

        cancelled_at = utcnow()
        for move in sale_moves:
            add_stock(
                warehouse_id=move.warehouse_id,
                product_id=move.product_id,
                quantity=-dec(move.quantity),
                tx_type=TX_SALE_RETURN,
                occurred_at=cancelled_at,
                reference_type=REFERENCE_TYPE_INVOICE,
                reference_id=invoice.id,
                note=f"Cancel {invoice.invoice_number}",
                user_id=user_id,
            )

        invoice.status = INVOICE_STATUS_CANCELLED
        invoice.cancelled_at = cancelled_at
        invoice.cancelled_by_user_id = user_id
        db.session.flush()
        return invoice

    return atomic(_op)
