"""FastAPI server exposing billable documents and reports."""

import datetime as dt
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from clinicledger.application.billing.charges import (
    AdjustmentRequest,
    ChargeRequest,
    ChargeResult,
    run_add_charge,
    run_record_adjustment,
)
from clinicledger.application.billing.documents import (
    CloseDocumentRequest,
    OpenDocumentRequest,
    run_close_document,
    run_list_documents,
    run_open_document,
    run_show_document,
)
from clinicledger.application.billing.payments import RecordPaymentRequest, run_record_payment
from clinicledger.application.billing.reports import (
    PeriodKind,
    resolve_period,
    run_fee_summary,
    run_method_totals_report,
    run_outstanding_report,
    run_revenue_report,
    run_staff_earnings_report,
)
from clinicledger.domain.billable_document import (
    BillableDocument,
    DocumentKind,
    DocumentStatus,
    LineItem,
    LineItemKind,
    PaymentEvent,
    PaymentMethod,
)
from clinicledger.domain.errors import (
    BillingError,
    DocumentClosed,
    DuplicateDocument,
    ExcessiveAdjustment,
    IdempotencyConflict,
    NotFound,
    Overpayment,
)
from clinicledger.domain.money import Money
from clinicledger.runtime import CatalogUnavailable, create_catalog, get_logger, get_paths, load_settings

logger = get_logger(__name__)

_CONFLICTS = (Overpayment, ExcessiveAdjustment, IdempotencyConflict, DocumentClosed, DuplicateDocument)


class OpenDocumentBody(BaseModel):
    subject_ref: str = Field(min_length=1)
    owner_ref: str = Field(min_length=1)
    kind: DocumentKind = "GENERIC"
    document_id: str | None = None


class ChargeBody(BaseModel):
    catalog_ref: str = Field(min_length=1)
    quantity: Decimal
    actor: str = Field(min_length=1)
    note: str | None = None
    unit_price: Decimal | None = None


class AdjustmentBody(BaseModel):
    amount: Decimal
    actor: str = Field(min_length=1)
    note: str | None = None


class PaymentBody(BaseModel):
    amount: Decimal
    method: PaymentMethod
    actor: str = Field(min_length=1)
    note: str | None = None
    idempotency_key: str | None = None


class CloseBody(BaseModel):
    actor: str = Field(min_length=1)


def _money(value: Money) -> str:
    return str(value)


def _line_item_payload(item: LineItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "kind": item.kind,
        "catalog_ref": item.catalog_ref,
        "unit_price": _money(item.unit_price),
        "quantity": str(item.quantity),
        "subtotal": _money(item.subtotal),
        "note": item.note,
        "recorded_at": item.recorded_at.isoformat(),
        "recorded_by": item.recorded_by,
    }


def _payment_payload(payment: PaymentEvent) -> dict[str, Any]:
    return {
        "id": payment.id,
        "amount": _money(payment.amount),
        "method": payment.method,
        "note": payment.note,
        "idempotency_key": payment.idempotency_key,
        "recorded_at": payment.recorded_at.isoformat(),
        "recorded_by": payment.recorded_by,
    }


def _document_summary(document: BillableDocument) -> dict[str, Any]:
    return {
        "id": document.id,
        "kind": document.kind,
        "subject_ref": document.subject_ref,
        "owner_ref": document.owner_ref,
        "currency": document.currency,
        "opened_at": document.opened_at.isoformat(),
        "closed_at": document.closed_at.isoformat() if document.closed_at else None,
        "total": _money(document.total),
        "paid": _money(document.paid),
        "outstanding": _money(document.outstanding),
        "status": document.status,
    }


def _document_payload(document: BillableDocument) -> dict[str, Any]:
    payload = _document_summary(document)
    payload["closed_by"] = document.closed_by
    payload["line_items"] = [_line_item_payload(item) for item in document.line_items]
    payload["payments"] = [_payment_payload(payment) for payment in document.payments]
    return payload


def _status_code_for(error: BillingError) -> int:
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, _CONFLICTS):
        return 409
    if isinstance(error, CatalogUnavailable):
        return 503
    return 422


def _error_response(error: BillingError | None) -> JSONResponse:
    if error is None:
        return JSONResponse({"status": "error", "code": "unknown", "message": "Request rejected"}, status_code=400)
    return JSONResponse(
        {
            "status": "error",
            "code": error.code,
            "message": error.message,
            "document_id": error.document_id,
        },
        status_code=_status_code_for(error),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create data directories and the shared catalog on startup."""
    get_paths().ensure_data_directories()
    app.state.catalog = None
    try:
        app.state.catalog = create_catalog(load_settings())
    except CatalogUnavailable as e:
        logger.warning("Catalog not available at startup, charges will retry per request: %s", e)
    yield
    if app.state.catalog is not None:
        app.state.catalog.close()
        app.state.catalog = None


app = FastAPI(title="Clinic Ledger", lifespan=lifespan)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/documents")
def open_document(body: OpenDocumentBody) -> JSONResponse:
    result = run_open_document(
        OpenDocumentRequest(
            subject_ref=body.subject_ref,
            owner_ref=body.owner_ref,
            kind=body.kind,
            document_id=body.document_id,
        )
    )
    if result.status != "opened" or result.document is None:
        return _error_response(result.error)
    return JSONResponse(_document_payload(result.document), status_code=201)


@app.get("/documents")
def list_documents(
    status: DocumentStatus | None = None,
    subject_ref: str | None = None,
    include_closed: bool = True,
) -> JSONResponse:
    listing = run_list_documents(status=status, subject_ref=subject_ref, include_closed=include_closed)
    return JSONResponse({"documents": [_document_summary(doc) for doc in listing.documents]})


@app.get("/documents/{document_id}")
def show_document(document_id: str) -> JSONResponse:
    result = run_show_document(document_id)
    if result.document is None:
        return _error_response(result.error)
    return JSONResponse(_document_payload(result.document))


def _charge(request: Request, document_id: str, kind: LineItemKind, body: ChargeBody) -> JSONResponse:
    result: ChargeResult = run_add_charge(
        ChargeRequest(
            document_id=document_id,
            kind=kind,
            catalog_ref=body.catalog_ref,
            quantity=body.quantity,
            actor=body.actor,
            note=body.note,
            unit_price=body.unit_price,
        ),
        getattr(request.app.state, "catalog", None),
    )
    if result.status != "recorded" or result.document is None or result.line_item is None:
        return _error_response(result.error)
    return JSONResponse(
        {"line_item": _line_item_payload(result.line_item), "document": _document_payload(result.document)},
        status_code=201,
    )


@app.post("/documents/{document_id}/services")
def add_service(request: Request, document_id: str, body: ChargeBody) -> JSONResponse:
    return _charge(request, document_id, "SERVICE", body)


@app.post("/documents/{document_id}/medications")
def add_medication(request: Request, document_id: str, body: ChargeBody) -> JSONResponse:
    return _charge(request, document_id, "MEDICATION", body)


@app.post("/documents/{document_id}/feed-items")
def add_feed_item(request: Request, document_id: str, body: ChargeBody) -> JSONResponse:
    return _charge(request, document_id, "INVENTORY", body)


@app.post("/documents/{document_id}/adjustments")
def add_adjustment(document_id: str, body: AdjustmentBody) -> JSONResponse:
    result = run_record_adjustment(
        AdjustmentRequest(document_id=document_id, amount=body.amount, note=body.note, actor=body.actor)
    )
    if result.status != "recorded" or result.document is None or result.line_item is None:
        return _error_response(result.error)
    return JSONResponse(
        {"line_item": _line_item_payload(result.line_item), "document": _document_payload(result.document)},
        status_code=201,
    )


@app.post("/documents/{document_id}/payments")
def record_payment(
    document_id: str,
    body: PaymentBody,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
) -> JSONResponse:
    result = run_record_payment(
        RecordPaymentRequest(
            document_id=document_id,
            amount=body.amount,
            method=body.method,
            actor=body.actor,
            note=body.note,
            idempotency_key=body.idempotency_key or idempotency_key,
        )
    )
    if result.status == "rejected" or result.document is None or result.payment is None:
        return _error_response(result.error)
    return JSONResponse(
        {
            "status": result.status,
            "payment": _payment_payload(result.payment),
            "document": _document_payload(result.document),
        },
        status_code=201 if result.status == "applied" else 200,
    )


@app.post("/documents/{document_id}/close")
def close_document(document_id: str, body: CloseBody) -> JSONResponse:
    result = run_close_document(CloseDocumentRequest(document_id=document_id, actor=body.actor))
    if result.status != "closed" or result.document is None:
        return _error_response(result.error)
    return JSONResponse(_document_payload(result.document))


def _today() -> dt.date:
    return dt.datetime.now(dt.UTC).date()


@app.get("/reports/revenue")
def revenue_report(period: PeriodKind = "day", on: dt.date | None = Query(default=None)) -> JSONResponse:
    report = run_revenue_report(resolve_period(period, on or _today()))
    return JSONResponse(
        {
            "start": report.period.start.isoformat(),
            "end": report.period.end.isoformat(),
            "total": _money(report.total),
            "by_day": {day.isoformat(): _money(amount) for day, amount in report.by_day.items()},
        }
    )


@app.get("/reports/method-totals")
def method_totals_report(period: PeriodKind = "day", on: dt.date | None = Query(default=None)) -> JSONResponse:
    window = resolve_period(period, on or _today())
    totals = run_method_totals_report(window)
    return JSONResponse(
        {
            "start": window.start.isoformat(),
            "end": window.end.isoformat(),
            "totals": {method: _money(amount) for method, amount in totals.totals.items()},
            "grand_total": _money(totals.grand_total),
        }
    )


@app.get("/reports/staff-earnings")
def staff_earnings_report(
    period: PeriodKind = "day",
    on: dt.date | None = Query(default=None),
    staff_ref: str | None = None,
) -> JSONResponse:
    report = run_staff_earnings_report(resolve_period(period, on or _today()), staff_ref=staff_ref)
    return JSONResponse(
        {
            "start": report.period.start.isoformat(),
            "end": report.period.end.isoformat(),
            "staff": [
                {
                    "staff_ref": row.staff_ref,
                    "item_count": row.item_count,
                    "amount": _money(row.amount),
                    "document_ids": list(row.document_ids),
                }
                for row in report.rows
            ],
        }
    )


@app.get("/clients/{client_ref}/outstanding")
def client_outstanding(client_ref: str) -> JSONResponse:
    report = run_outstanding_report(client_ref)
    return JSONResponse(
        {
            "client_ref": client_ref,
            "outstanding": _money(report.outstanding),
            "documents": [_document_summary(doc) for doc in report.documents],
        }
    )


@app.get("/clients/{client_ref}/fee-summary")
def client_fee_summary(client_ref: str) -> JSONResponse:
    summary = run_fee_summary(client_ref)
    return JSONResponse(
        {
            "client_ref": summary.client_ref,
            "total_all": _money(summary.total_all),
            "total_unpaid": _money(summary.total_unpaid),
            "total_waiting_for_payment": _money(summary.total_waiting_for_payment),
        }
    )
