# Overview: Credit Settlement Ledger; records payments against credit sales and reports receivables.

"""
Credit Settlement Service

Payments are append-only CreditPayment rows. Each accepted payment moves
CreditSale.paid_amount and the parent SalesInvoice.paid_amount together, in
the same unit of work, so the two always agree with the payment log:

    CreditSale.paid_amount == SUM(CreditPayment.amount) == SalesInvoice.paid_amount

A receivable is settled ('paid') once the remaining balance is within
PAYMENT_EPSILON (one cent); otherwise it is 'partial'.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date
from decimal import Decimal

from ..errors import ConflictError, NotFoundError, OverpaymentError, ValidationError
from ..extensions import db
from ..models import CreditPayment, CreditSale, Customer, SalesInvoice
from ..models.sales import (
    CREDIT_STATUS_CANCELLED,
    CREDIT_STATUS_PAID,
    CREDIT_STATUS_PARTIAL,
    OPEN_CREDIT_STATUSES,
)
from ..numbers import PAYMENT_EPSILON, dec, exact_money, money
from textile_erp.time_utils import today, utcnow
from .concurrency import atomic, lock_for_update


PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_BANK_TRANSFER = "bank_transfer"
PAYMENT_METHOD_CHEQUE = "cheque"
PAYMENT_METHOD_CARD = "card"

VALID_PAYMENT_METHODS = [
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_BANK_TRANSFER,
    PAYMENT_METHOD_CHEQUE,
    PAYMENT_METHOD_CARD,
]

AGING_BUCKETS = ["current", "1_30", "31_60", "61_90", "over_90"]


def settlement_status(total_amount, paid_amount) -> str:
    """'paid' when the remaining balance is within one cent, else 'partial'."""
    if dec(total_amount) - dec(paid_amount) <= PAYMENT_EPSILON:
        return CREDIT_STATUS_PAID
    return CREDIT_STATUS_PARTIAL


def record_payment(
    *,
    credit_id: int,
    amount,
    method: str,
    reference: str | None = None,
    user_id: int | None = None,
) -> CreditSale:
    """
    Apply a customer payment to a credit sale.

    Args:
        credit_id: CreditSale being settled
        amount: Payment amount (> 0, at most the outstanding balance)
        method: cash, bank_transfer, cheque or card
        reference: Free-text receipt/cheque/transfer reference
        user_id: User recording the payment

    Returns:
        The updated CreditSale

    Raises:
        ValidationError: non-positive amount or unknown method
        NotFoundError: credit sale does not exist
        ConflictError: credit sale was cancelled with its invoice
        OverpaymentError: amount exceeds the balance (carries max_allowed)
    """
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}")
    try:
        payment_amount = exact_money(amount)
    except (ValueError, ArithmeticError) as exc:
        raise ValidationError(f"amount is invalid: {exc}")
    if payment_amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")

    def _op():
        credit = lock_for_update(
            db.session.query(CreditSale).filter_by(id=credit_id)
        ).first()
        if credit is None:
            raise NotFoundError(f"Credit record {credit_id} not found")
        if credit.status == CREDIT_STATUS_CANCELLED:
            raise ConflictError(f"Credit record {credit_id} is cancelled")

        balance = money(dec(credit.total_amount) - dec(credit.paid_amount))
        if payment_amount > balance:
            raise OverpaymentError(
                f"Payment amount exceeds current balance of {balance}",
                max_allowed=balance,
            )

        db.session.add(CreditPayment(
            credit_id=credit.id,
            payment_date=utcnow(),
            payment_method=method,
            payment_reference=reference or "",
            amount=payment_amount,
            recorded_by_user_id=user_id,
        ))

        new_paid = money(dec(credit.paid_amount) + payment_amount)
        new_status = settlement_status(credit.total_amount, new_paid)

        invoice = lock_for_update(
            db.session.query(SalesInvoice).filter_by(id=credit.invoice_id)
        ).first()
        if invoice is None:
            raise NotFoundError(f"Invoice {credit.invoice_id} not found for credit {credit_id}")

        credit.paid_amount = new_paid
        credit.status = new_status
        invoice.paid_amount = new_paid
        invoice.status = new_status

        db.session.flush()
        return credit

    return atomic(_op)


def get_credit(credit_id: int) -> CreditSale:
    credit = db.session.get(CreditSale, credit_id)
    if credit is None:
        raise NotFoundError(f"Credit record {credit_id} not found")
    return credit


def list_outstanding_credits(*, customer_id: int | None = None) -> list[CreditSale]:
    """Open receivables, earliest due first."""
    q = db.session.query(CreditSale).filter(CreditSale.status.in_(OPEN_CREDIT_STATUSES))
    if customer_id is not None:
        q = q.filter(CreditSale.customer_id == customer_id)
    return q.order_by(CreditSale.due_date.asc(), CreditSale.id.asc()).all()


def get_payment_history(credit_id: int) -> list[CreditPayment]:
    get_credit(credit_id)
    return (
        db.session.query(CreditPayment)
        .filter_by(credit_id=credit_id)
        .order_by(CreditPayment.payment_date.desc(), CreditPayment.id.desc())
        .all()
    )


def aging_bucket(due_date: date, as_of: date) -> str:
    days_overdue = (as_of - due_date).days
    if days_overdue <= 0:
        return "current"
    if days_overdue <= 30:
        return "1_30"
    if days_overdue <= 60:
        return "31_60"
    if days_overdue <= 90:
        return "61_90"
    return "over_90"


def credit_aging_report(as_of: date | None = None) -> list[dict]:
    """
    Outstanding balances per customer, split into days-past-due buckets.

    Customers are listed by total outstanding, largest first.
    """
    as_of = as_of or today()

    rows = (
        db.session.query(CreditSale, Customer)
        .join(Customer, CreditSale.customer_id == Customer.id)
        .filter(CreditSale.status.in_(OPEN_CREDIT_STATUSES))
        .order_by(Customer.name, CreditSale.due_date)
        .all()
    )

    report: "OrderedDict[int, dict]" = OrderedDict()
    for credit, customer in rows:
        entry = report.get(customer.id)
        if entry is None:
            entry = {
                "customer_id": customer.id,
                "customer_code": customer.code,
                "customer_name": customer.name,
                "credit_limit": money(customer.credit_limit),
                "buckets": {name: Decimal("0.00") for name in AGING_BUCKETS},
                "total_outstanding": Decimal("0.00"),
            }
            report[customer.id] = entry

        balance = money(dec(credit.total_amount) - dec(credit.paid_amount))
        entry["buckets"][aging_bucket(credit.due_date, as_of)] += balance
        entry["total_outstanding"] += balance

    result = sorted(report.values(), key=lambda e: e["total_outstanding"], reverse=True)
    for entry in result:
        entry["credit_limit"] = str(entry["credit_limit"])
        entry["total_outstanding"] = str(entry["total_outstanding"])
        entry["buckets"] = {name: str(value) for name, value in entry["buckets"].items()}
    return result
