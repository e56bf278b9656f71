# Overview: Error taxonomy shared by the core services and the HTTP layer.

"""
Ledger errors.

Every core operation is all-or-nothing: the first failure raised inside a unit
of work rolls back every write made so far, and the caller receives exactly
one of these errors. Routes translate them with `error_response()`.
"""

from __future__ import annotations

from flask import jsonify


class LedgerError(Exception):
    """Base class for errors raised by the transaction core."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        body.update(self.details)
        return body


class ValidationError(LedgerError):
    """Malformed or missing input (caller error, never retried)."""
    status_code = 400


class NotFoundError(LedgerError):
    """A referenced credit record, invoice or order does not exist."""
    status_code = 404


class InsufficientStockError(LedgerError):
    """A deduction would take an inventory position below zero."""
    status_code = 409

    def __init__(
        self,
        message: str,
        *,
        product_id: int | None = None,
        warehouse_id: int | None = None,
        on_hand=None,
        requested=None,
    ):
        super().__init__(message, details={
            "product_id": product_id,
            "warehouse_id": warehouse_id,
            "on_hand": str(on_hand) if on_hand is not None else None,
            "requested": str(requested) if requested is not None else None,
        })
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.on_hand = on_hand
        self.requested = requested


class OverpaymentError(LedgerError):
    """Payment exceeds the outstanding balance; carries the maximum allowed."""
    status_code = 400

    def __init__(self, message: str, *, max_allowed):
        super().__init__(message, details={"max_allowed": str(max_allowed)})
        self.max_allowed = max_allowed


class ConflictError(LedgerError):
    """Concurrent collision or state conflict (e.g. duplicate invoice number)."""
    status_code = 409


class InternalError(LedgerError):
    """Unexpected datastore failure; the enclosing transaction was rolled back."""
    status_code = 500


def error_response(exc: LedgerError):
    return jsonify(exc.to_dict()), exc.status_code
