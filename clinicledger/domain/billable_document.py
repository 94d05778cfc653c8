"""Billable document ledger model.

A BillableDocument owns an append-only list of line items and an append-only
list of payment events. Total, paid, outstanding and status are derived from
those two lists on every read and are never stored.

Usage:
    from clinicledger.domain import open_document, add_line_item, apply_payment

    doc = open_document(document_id="doc-1", kind="MEDICAL_CARD", subject_ref="client-7", owner_ref="doctor-3")
    add_line_item(doc, "SERVICE", "svc-12", "50000", 2, None, "doctor-3")
    apply_payment(doc, "40000", "CASH", "moderator-1")
    doc.status  # "PARTLY_PAID"
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Literal, get_args

from clinicledger.domain.errors import DocumentClosed, InvalidReference
from clinicledger.domain.money import Money, sum_money

LineItemKind = Literal["SERVICE", "MEDICATION", "INVENTORY", "ADJUSTMENT"]
PaymentMethod = Literal["CASH", "CARD", "TRANSFER", "CLICK", "PAYME", "OTHER"]
DocumentKind = Literal["MEDICAL_CARD", "NURSE_CARE", "FEED_SALE", "GENERIC"]
DocumentStatus = Literal["WAITING", "PARTLY_PAID", "FULLY_PAID"]

LINE_ITEM_KINDS: tuple[str, ...] = get_args(LineItemKind)
CHARGE_KINDS: tuple[str, ...] = ("SERVICE", "MEDICATION", "INVENTORY")
PAYMENT_METHODS: tuple[str, ...] = get_args(PaymentMethod)
DOCUMENT_KINDS: tuple[str, ...] = get_args(DocumentKind)
DOCUMENT_STATUSES: tuple[str, ...] = get_args(DocumentStatus)

DEFAULT_CURRENCY = "UZS"

_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]{0,63}$")


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_aware(value: datetime | None) -> datetime:
    """Return a timezone-aware timestamp; naive values are taken as UTC."""
    if value is None:
        return utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def validate_identifier(value: str, label: str) -> str:
    if not isinstance(value, str) or not _ID_RE.match(value):
        raise InvalidReference(f"Invalid {label}: {value!r}")
    return value


def require_choice(value: str, choices: tuple[str, ...], label: str) -> str:
    if value not in choices:
        raise InvalidReference(f"Unknown {label} {value!r}; expected one of {', '.join(choices)}")
    return value


@dataclass(frozen=True)
class LineItem:
    """A single recorded charge (or correction) on a document."""

    id: str
    document_id: str
    kind: LineItemKind
    catalog_ref: str
    unit_price: Money
    quantity: Decimal
    recorded_at: datetime
    recorded_by: str
    note: str | None = None

    @property
    def subtotal(self) -> Money:
        return Money.of(self.unit_price.amount * self.quantity)

    @property
    def is_adjustment(self) -> bool:
        return self.kind == "ADJUSTMENT"

    @property
    def signed_subtotal(self) -> Decimal:
        amount = self.subtotal.amount
        return -amount if self.is_adjustment else amount


@dataclass(frozen=True)
class PaymentEvent:
    """A single recorded payment against a document."""

    id: str
    document_id: str
    amount: Money
    method: PaymentMethod
    recorded_at: datetime
    recorded_by: str
    note: str | None = None
    idempotency_key: str | None = None


def derive_status(paid: Money, total: Money) -> DocumentStatus:
    if paid.is_zero():
        return "WAITING"
    if paid < total:
        return "PARTLY_PAID"
    return "FULLY_PAID"


@dataclass
class BillableDocument:
    """Ledger for one billed case (medical card, nurse-care card, feed sale)."""

    id: str
    kind: DocumentKind
    subject_ref: str
    owner_ref: str
    opened_at: datetime
    currency: str = DEFAULT_CURRENCY
    line_items: list[LineItem] = field(default_factory=list)
    payments: list[PaymentEvent] = field(default_factory=list)
    closed_at: datetime | None = None
    closed_by: str | None = None

    @property
    def total(self) -> Money:
        return Money.of(sum((item.signed_subtotal for item in self.line_items), Decimal("0")))

    @property
    def paid(self) -> Money:
        return sum_money(payment.amount for payment in self.payments)

    @property
    def outstanding(self) -> Money:
        return self.total - self.paid

    @property
    def status(self) -> DocumentStatus:
        return derive_status(self.paid, self.total)

    @property
    def is_closed(self) -> bool:
        return self.closed_at is not None

    def charges(self) -> list[LineItem]:
        return [item for item in self.line_items if not item.is_adjustment]

    def adjustments(self) -> list[LineItem]:
        return [item for item in self.line_items if item.is_adjustment]

    def payment_for_key(self, idempotency_key: str) -> PaymentEvent | None:
        for payment in self.payments:
            if payment.idempotency_key == idempotency_key:
                return payment
        return None


def open_document(
    *,
    subject_ref: str,
    owner_ref: str,
    kind: DocumentKind = "GENERIC",
    document_id: str | None = None,
    currency: str = DEFAULT_CURRENCY,
    opened_at: datetime | None = None,
) -> BillableDocument:
    """Create an empty, open document. No charges are required up front."""
    return BillableDocument(
        id=validate_identifier(document_id or new_id("doc"), "document id"),
        kind=require_choice(kind, DOCUMENT_KINDS, "document kind"),  # type: ignore[arg-type]
        subject_ref=validate_identifier(subject_ref, "subject ref"),
        owner_ref=validate_identifier(owner_ref, "owner ref"),
        currency=currency,
        opened_at=ensure_aware(opened_at),
    )


def close_document(document: BillableDocument, actor: str, *, closed_at: datetime | None = None) -> datetime:
    """Mark the document closed. Payment status is not consulted."""
    validate_identifier(actor, "actor")
    if document.is_closed:
        raise DocumentClosed(f"Document {document.id} is already closed", document_id=document.id)
    stamp = ensure_aware(closed_at)
    document.closed_at = stamp
    document.closed_by = actor
    return stamp
