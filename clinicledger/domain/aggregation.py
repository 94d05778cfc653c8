"""Read-side projections over committed billable documents.

All functions are pure: they take an iterable of documents and never
mutate them. Revenue is recognised when a payment is recorded; staff
earnings accrue when a charge is recorded, whether or not it is paid.
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from decimal import Decimal

from clinicledger.domain.billable_document import (
    PAYMENT_METHODS,
    BillableDocument,
    DocumentStatus,
    LineItem,
    PaymentEvent,
)
from clinicledger.domain.money import Money, sum_money


@dataclass(frozen=True)
class Period:
    """Half-open time window [start, end)."""

    start: dt.datetime
    end: dt.datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Period bounds must be timezone-aware")
        if self.end <= self.start:
            raise ValueError(f"Period end {self.end} must be after start {self.start}")

    def contains(self, moment: dt.datetime) -> bool:
        return self.start <= moment < self.end

    def days(self) -> Iterator[dt.date]:
        current = self.start.date()
        last = (self.end - dt.timedelta(microseconds=1)).date()
        while current <= last:
            yield current
            current += dt.timedelta(days=1)

    @classmethod
    def day(cls, day: dt.date, tz: dt.tzinfo = dt.UTC) -> Period:
        start = dt.datetime.combine(day, dt.time.min, tzinfo=tz)
        return cls(start, start + dt.timedelta(days=1))

    @classmethod
    def week(cls, day: dt.date, tz: dt.tzinfo = dt.UTC) -> Period:
        """ISO week (Monday through Sunday) containing ``day``."""
        monday = day - dt.timedelta(days=day.weekday())
        start = dt.datetime.combine(monday, dt.time.min, tzinfo=tz)
        return cls(start, start + dt.timedelta(days=7))

    @classmethod
    def month(cls, year: int, month: int, tz: dt.tzinfo = dt.UTC) -> Period:
        start = dt.datetime(year, month, 1, tzinfo=tz)
        if month == 12:
            end = dt.datetime(year + 1, 1, 1, tzinfo=tz)
        else:
            end = dt.datetime(year, month + 1, 1, tzinfo=tz)
        return cls(start, end)

    @classmethod
    def year(cls, year: int, tz: dt.tzinfo = dt.UTC) -> Period:
        return cls(dt.datetime(year, 1, 1, tzinfo=tz), dt.datetime(year + 1, 1, 1, tzinfo=tz))


@dataclass(frozen=True)
class MethodTotals:
    """Collected amounts per payment method within a period."""

    totals: dict[str, Money]
    grand_total: Money


@dataclass(frozen=True)
class ClientFeeSummary:
    """Per-client billing summary shown on the client dashboard."""

    client_ref: str
    total_all: Money
    total_unpaid: Money
    total_waiting_for_payment: Money


@dataclass(frozen=True)
class StaffEarning:
    staff_ref: str
    item_count: int
    amount: Money
    document_ids: tuple[str, ...] = field(default_factory=tuple)


def _payments_in(documents: Iterable[BillableDocument], period: Period) -> Iterator[PaymentEvent]:
    for document in documents:
        for payment in document.payments:
            if period.contains(payment.recorded_at):
                yield payment


def _items_in(documents: Iterable[BillableDocument], period: Period) -> Iterator[LineItem]:
    for document in documents:
        for item in document.line_items:
            if period.contains(item.recorded_at):
                yield item


def revenue_for(documents: Iterable[BillableDocument], period: Period) -> Money:
    """Sum of payments recorded within the period."""
    return sum_money(payment.amount for payment in _payments_in(documents, period))


def revenue_by_day(documents: Iterable[BillableDocument], period: Period) -> dict[dt.date, Money]:
    """Daily revenue buckets for every day in the period, zero-filled."""
    buckets: dict[dt.date, Money] = {day: Money.zero() for day in period.days()}
    for payment in _payments_in(documents, period):
        day = payment.recorded_at.astimezone(period.start.tzinfo).date()
        buckets[day] = buckets.get(day, Money.zero()) + payment.amount
    return buckets


def outstanding_by_client(documents: Iterable[BillableDocument], client_ref: str) -> Money:
    """Outstanding balance across the client's open documents."""
    return sum_money(
        document.outstanding
        for document in documents
        if document.subject_ref == client_ref and not document.is_closed
    )


def staff_earnings(documents: Iterable[BillableDocument], staff_ref: str, period: Period) -> Money:
    """Value of charges the staff member recorded within the period."""
    total = sum(
        (item.signed_subtotal for item in _items_in(documents, period) if item.recorded_by == staff_ref),
        Decimal("0"),
    )
    # A correction can fall in a later period than the charge it reverses.
    return Money.of(max(total, Decimal("0")))


def staff_earnings_summary(documents: Iterable[BillableDocument], period: Period) -> list[StaffEarning]:
    """One row per staff member who recorded charges within the period."""
    amounts: dict[str, Decimal] = defaultdict(Decimal)
    counts: dict[str, int] = defaultdict(int)
    doc_ids: dict[str, set[str]] = defaultdict(set)
    for item in _items_in(documents, period):
        amounts[item.recorded_by] += item.signed_subtotal
        counts[item.recorded_by] += 1
        doc_ids[item.recorded_by].add(item.document_id)

    return [
        StaffEarning(
            staff_ref=staff_ref,
            item_count=counts[staff_ref],
            amount=Money.of(max(amounts[staff_ref], Decimal("0"))),
            document_ids=tuple(sorted(doc_ids[staff_ref])),
        )
        for staff_ref in sorted(amounts)
    ]


def method_totals(documents: Iterable[BillableDocument], period: Period) -> MethodTotals:
    totals: dict[str, Money] = {method: Money.zero() for method in PAYMENT_METHODS}
    for payment in _payments_in(documents, period):
        totals[payment.method] = totals[payment.method] + payment.amount
    return MethodTotals(totals=totals, grand_total=sum_money(totals.values()))


def client_fee_summary(documents: Iterable[BillableDocument], client_ref: str) -> ClientFeeSummary:
    owned = [document for document in documents if document.subject_ref == client_ref]
    return ClientFeeSummary(
        client_ref=client_ref,
        total_all=sum_money(document.total for document in owned),
        total_unpaid=sum_money(document.outstanding for document in owned),
        total_waiting_for_payment=sum_money(document.total for document in owned if document.status == "WAITING"),
    )


def documents_with_status(
    documents: Iterable[BillableDocument],
    status: DocumentStatus,
) -> list[BillableDocument]:
    return [document for document in documents if document.status == status]
