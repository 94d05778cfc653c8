"""Payment application with overpayment prevention."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from clinicledger.domain.billable_document import (
    PAYMENT_METHODS,
    BillableDocument,
    PaymentEvent,
    PaymentMethod,
    ensure_aware,
    new_id,
    require_choice,
    validate_identifier,
)
from clinicledger.domain.errors import DocumentClosed, IdempotencyConflict, InvalidAmount, Overpayment
from clinicledger.domain.money import Money


def apply_payment(
    document: BillableDocument,
    amount: Money | Decimal | int | str,
    method: PaymentMethod,
    actor: str,
    *,
    note: str | None = None,
    idempotency_key: str | None = None,
    recorded_at: datetime | None = None,
    payment_id: str | None = None,
    allow_closed: bool = True,
) -> PaymentEvent:
    """
    Apply a single payment to a document.

    The outstanding balance is read from the same in-memory document that
    receives the event, so callers must run this inside the store's
    per-document update to keep the check and the append atomic.

    A retry carrying an already-used idempotency key returns the original
    event when amount and method match, and raises IdempotencyConflict
    otherwise. Either way no second event is appended.

    Raises:
        InvalidAmount: amount <= 0 or malformed.
        Overpayment: amount exceeds the outstanding balance.
        DocumentClosed: document is closed and allow_closed is false.
        IdempotencyConflict: key reused with different parameters.
        InvalidReference: malformed actor or idempotency key.
    """
    value = Money.of(amount)
    require_choice(method, PAYMENT_METHODS, "payment method")
    validate_identifier(actor, "actor")

    if idempotency_key:
        validate_identifier(idempotency_key, "idempotency key")
        previous = document.payment_for_key(idempotency_key)
        if previous is not None:
            if previous.amount == value and previous.method == method:
                return previous
            raise IdempotencyConflict(
                f"Idempotency key {idempotency_key!r} already used for {previous.amount} {previous.method}",
                document_id=document.id,
            )

    if value.is_zero():
        raise InvalidAmount("Payment amount must be positive", document_id=document.id)
    if document.is_closed and not allow_closed:
        raise DocumentClosed(f"Document {document.id} is closed and accepts no payments", document_id=document.id)

    outstanding = document.outstanding
    if value > outstanding:
        raise Overpayment(
            f"Payment {value} exceeds outstanding balance {outstanding} on {document.id}",
            document_id=document.id,
        )

    event = PaymentEvent(
        id=payment_id or new_id("pay"),
        document_id=document.id,
        amount=value,
        method=method,
        note=note or None,
        idempotency_key=idempotency_key or None,
        recorded_at=ensure_aware(recorded_at),
        recorded_by=actor,
    )
    document.payments.append(event)
    return event
