"""Charge and correction workflow orchestration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal

from clinicledger.domain.accrual import add_line_item, record_adjustment
from clinicledger.domain.billable_document import BillableDocument, LineItem, LineItemKind
from clinicledger.domain.errors import BillingError
from clinicledger.ledger_store import get_document_writer
from clinicledger.runtime import Catalog, create_catalog, document_logger, get_logger, load_settings

logger = get_logger(__name__)

ChargeStatus = Literal["recorded", "rejected"]


@dataclass(frozen=True)
class ChargeRequest:
    """Inputs for recording one charge.

    When ``unit_price`` is omitted the price is looked up in the catalog
    and copied into the line item.
    """

    document_id: str
    kind: LineItemKind
    catalog_ref: str
    quantity: Decimal | int | str
    actor: str
    note: str | None = None
    unit_price: Decimal | str | None = None
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class AdjustmentRequest:
    """Inputs for recording a correction against a document."""

    document_id: str
    amount: Decimal | str
    note: str | None
    actor: str
    catalog_ref: str = "correction"
    recorded_at: datetime | None = None


@dataclass(frozen=True)
class ChargeResult:
    """Outcome of a charge or correction."""

    status: ChargeStatus
    document: BillableDocument | None = None
    line_item: LineItem | None = None
    error: BillingError | None = None


def _resolve_price(request: ChargeRequest, catalog: Catalog | None) -> Decimal | str:
    if request.unit_price is not None:
        return request.unit_price
    if catalog is not None:
        return catalog.lookup(request.kind, request.catalog_ref).unit_price

    owned = create_catalog(load_settings())
    try:
        return owned.lookup(request.kind, request.catalog_ref).unit_price
    finally:
        owned.close()


def run_add_charge(request: ChargeRequest, catalog: Catalog | None = None) -> ChargeResult:
    """Record one priced charge against an open document."""
    try:
        price = _resolve_price(request, catalog)
        document, item = get_document_writer().update(
            request.document_id,
            lambda doc: add_line_item(
                doc,
                request.kind,
                request.catalog_ref,
                price,
                request.quantity,
                request.note,
                request.actor,
                recorded_at=request.recorded_at,
            ),
        )
    except BillingError as exc:
        document_logger(logger, request.document_id).info("Charge rejected (%s): %s", exc.code, exc)
        return ChargeResult(status="rejected", error=exc)

    document_logger(logger, document.id).debug("Recorded %s %s x %s", item.kind, item.catalog_ref, item.quantity)
    return ChargeResult(status="recorded", document=document, line_item=item)


def run_record_adjustment(request: AdjustmentRequest) -> ChargeResult:
    """Record a correction as a new ADJUSTMENT line item."""
    try:
        document, item = get_document_writer().update(
            request.document_id,
            lambda doc: record_adjustment(
                doc,
                request.amount,
                request.note,
                request.actor,
                catalog_ref=request.catalog_ref,
                recorded_at=request.recorded_at,
            ),
        )
    except BillingError as exc:
        document_logger(logger, request.document_id).info("Adjustment rejected (%s): %s", exc.code, exc)
        return ChargeResult(status="rejected", error=exc)
    return ChargeResult(status="recorded", document=document, line_item=item)
