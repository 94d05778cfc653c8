"""Payment workflow orchestration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal

from clinicledger.domain.billable_document import BillableDocument, PaymentEvent, PaymentMethod
from clinicledger.domain.errors import BillingError
from clinicledger.domain.payment_applier import apply_payment
from clinicledger.ledger_store import get_document_writer
from clinicledger.runtime import document_logger, get_logger, load_settings

logger = get_logger(__name__)

PaymentStatus = Literal["applied", "replayed", "rejected"]


@dataclass(frozen=True)
class RecordPaymentRequest:
    """Inputs for recording one payment."""

    document_id: str
    amount: Decimal | str
    method: PaymentMethod
    actor: str
    note: str | None = None
    idempotency_key: str | None = None
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class RecordPaymentResult:
    """Outcome from recording one payment.

    ``replayed`` means the idempotency key matched an earlier payment and
    that payment is returned unchanged.
    """

    status: PaymentStatus
    document: BillableDocument | None = None
    payment: PaymentEvent | None = None
    error: BillingError | None = None


def run_record_payment(request: RecordPaymentRequest) -> RecordPaymentResult:
    """Apply a payment inside the document's atomic update."""
    allow_closed = load_settings().accept_payments_on_closed
    log = document_logger(logger, request.document_id)

    def _apply(document: BillableDocument) -> tuple[PaymentEvent, bool]:
        before = len(document.payments)
        event = apply_payment(
            document,
            request.amount,
            request.method,
            request.actor,
            note=request.note,
            idempotency_key=request.idempotency_key,
            recorded_at=request.recorded_at,
            allow_closed=allow_closed,
        )
        return event, len(document.payments) == before

    try:
        document, (payment, replayed) = get_document_writer().update(request.document_id, _apply)
    except BillingError as exc:
        log.info("Payment rejected (%s): %s", exc.code, exc)
        return RecordPaymentResult(status="rejected", error=exc)

    if replayed:
        log.info("Replayed payment %s for key %s", payment.id, request.idempotency_key)
        return RecordPaymentResult(status="replayed", document=document, payment=payment)

    log.info("Payment %s %s %s", payment.id, payment.amount, payment.method)
    return RecordPaymentResult(status="applied", document=document, payment=payment)
