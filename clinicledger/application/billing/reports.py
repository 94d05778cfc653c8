"""Report workflows over committed documents.

Every report loads the document journals read-only and runs the pure
aggregation projections over them.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Literal

from clinicledger.domain.aggregation import (
    ClientFeeSummary,
    MethodTotals,
    Period,
    StaffEarning,
    client_fee_summary,
    method_totals,
    outstanding_by_client,
    revenue_by_day,
    revenue_for,
    staff_earnings,
    staff_earnings_summary,
)
from clinicledger.domain.billable_document import BillableDocument
from clinicledger.domain.money import Money
from clinicledger.ledger_store import get_document_reader

PeriodKind = Literal["day", "week", "month", "year"]
PERIOD_KINDS: tuple[PeriodKind, ...] = ("day", "week", "month", "year")


@dataclass(frozen=True)
class RevenueReport:
    """Revenue collected in a period, with a per-day breakdown."""

    period: Period
    total: Money
    by_day: dict[dt.date, Money]


@dataclass(frozen=True)
class OutstandingReport:
    client_ref: str
    outstanding: Money
    documents: list[BillableDocument]


@dataclass(frozen=True)
class StaffEarningsReport:
    period: Period
    rows: list[StaffEarning]


def resolve_period(kind: PeriodKind, on: dt.date, tz: dt.tzinfo = dt.UTC) -> Period:
    """Return the day/week/month/year window containing ``on``."""
    if kind == "day":
        return Period.day(on, tz)
    if kind == "week":
        return Period.week(on, tz)
    if kind == "month":
        return Period.month(on.year, on.month, tz)
    if kind == "year":
        return Period.year(on.year, tz)
    raise ValueError(f"Unknown period kind: {kind!r}")


def _documents() -> list[BillableDocument]:
    return get_document_reader().load_all()


def run_revenue_report(period: Period) -> RevenueReport:
    documents = _documents()
    return RevenueReport(
        period=period,
        total=revenue_for(documents, period),
        by_day=revenue_by_day(documents, period),
    )


def run_outstanding_report(client_ref: str) -> OutstandingReport:
    """Outstanding balance across a client's open documents."""
    documents = _documents()
    owing = [doc for doc in documents if doc.subject_ref == client_ref and not doc.is_closed and doc.outstanding]
    return OutstandingReport(
        client_ref=client_ref,
        outstanding=outstanding_by_client(documents, client_ref),
        documents=owing,
    )


def run_staff_earnings_report(period: Period, staff_ref: str | None = None) -> StaffEarningsReport:
    """Earnings per staff member; a single row when ``staff_ref`` is given."""
    documents = _documents()
    rows = staff_earnings_summary(documents, period)
    if staff_ref is None:
        return StaffEarningsReport(period=period, rows=rows)

    matching = [row for row in rows if row.staff_ref == staff_ref]
    if not matching:
        matching = [
            StaffEarning(
                staff_ref=staff_ref,
                item_count=0,
                amount=staff_earnings(documents, staff_ref, period),
                document_ids=(),
            )
        ]
    return StaffEarningsReport(period=period, rows=matching)


def run_method_totals_report(period: Period) -> MethodTotals:
    return method_totals(_documents(), period)


def run_fee_summary(client_ref: str) -> ClientFeeSummary:
    return client_fee_summary(_documents(), client_ref)
