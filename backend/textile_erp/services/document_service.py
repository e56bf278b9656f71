# Overview: Race-free document numbering for invoices and production orders.

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence


DOCUMENT_TYPE_INVOICE = "INVOICE"
DOCUMENT_TYPE_PRODUCTION_ORDER = "PRODUCTION_ORDER"


def next_sequence_value(document_type: str) -> int:
    """
    Atomically allocate the next number for a document type.

    Runs inside the caller's transaction and never commits. The UPDATE takes
    a row lock on the sequence, so concurrent callers serialize here. If two
    callers race to create the very first row, the loser's flush raises
    IntegrityError and the enclosing unit of work is retried.
    """
    if not document_type:
        raise ValueError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        return current - 1

    seq = DocumentSequence(document_type=document_type, next_number=2)
    db.session.add(seq)
    db.session.flush()
    return 1


def format_invoice_number(sequence: int, issued_at: datetime) -> str:
    """INV-<YYYYMM>-<seq padded to 4>, e.g. INV-202602-0001."""
    return f"INV-{issued_at:%Y%m}-{sequence:04d}"


def format_order_number(sequence: int, order_date: date) -> str:
    """PO-<YYYYMMDD>-<seq padded to 5>, e.g. PO-20260205-00001."""
    return f"PO-{order_date:%Y%m%d}-{sequence:05d}"


def next_invoice_number(issued_at: datetime) -> str:
    return format_invoice_number(next_sequence_value(DOCUMENT_TYPE_INVOICE), issued_at)


def next_order_number(order_date: date) -> str:
    return format_order_number(next_sequence_value(DOCUMENT_TYPE_PRODUCTION_ORDER), order_date)
