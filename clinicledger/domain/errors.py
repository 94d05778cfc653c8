"""Billing error taxonomy.

Every error here is a validation failure reported synchronously to the
caller. Nothing is written to a document when one of these is raised.
"""

from __future__ import annotations


class BillingError(Exception):
    """Base class for rejected billing operations."""

    code = "billing_error"

    def __init__(self, message: str, *, document_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.document_id = document_id


class InvalidQuantity(BillingError):
    code = "invalid_quantity"


class InvalidAmount(BillingError):
    code = "invalid_amount"


class NegativeMoney(InvalidAmount):
    """Arithmetic would produce a negative Money value."""

    code = "negative_money"


class Overpayment(BillingError):
    code = "overpayment"


class ExcessiveAdjustment(BillingError):
    """Correction would push total below what has already been paid."""

    code = "excessive_adjustment"


class DocumentClosed(BillingError):
    code = "document_closed"


class NotFound(BillingError):
    code = "not_found"


class DuplicateDocument(BillingError):
    code = "duplicate_document"


class IdempotencyConflict(BillingError):
    """Idempotency key reused with a different amount or method."""

    code = "idempotency_conflict"


class InvalidReference(BillingError):
    """Unknown kind/method code or a malformed identifier."""

    code = "invalid_reference"
