"""End-to-end tests for billing workflows over the journal store."""

from __future__ import annotations

import datetime as dt
import threading
from decimal import Decimal
from pathlib import Path

from clinicledger.application.billing import (
    AdjustmentRequest,
    ChargeRequest,
    CloseDocumentRequest,
    OpenDocumentRequest,
    RecordPaymentRequest,
    add_feed_item,
    add_medication,
    add_service,
    open_feed_sale,
    open_medical_card,
    open_nurse_care_card,
    resolve_period,
    run_add_charge,
    run_close_document,
    run_fee_summary,
    run_list_documents,
    run_method_totals_report,
    run_open_document,
    run_outstanding_report,
    run_record_adjustment,
    run_record_payment,
    run_revenue_report,
    run_show_document,
    run_staff_earnings_report,
)
from clinicledger.application.billing.payments import RecordPaymentResult
from clinicledger.domain.errors import (
    DocumentClosed,
    DuplicateDocument,
    IdempotencyConflict,
    InvalidQuantity,
    InvalidReference,
    NotFound,
    Overpayment,
)
from clinicledger.domain.money import Money
from clinicledger.runtime.catalog import CatalogEntry, CatalogUnavailable

AT = dt.datetime(2026, 3, 10, 9, 0, tzinfo=dt.UTC)


class _FixedCatalog:
    def __init__(self, prices: dict[tuple[str, str], str]) -> None:
        self.prices = prices
        self.lookups: list[tuple[str, str]] = []

    def lookup(self, kind: str, catalog_ref: str) -> CatalogEntry:
        self.lookups.append((kind, catalog_ref))
        price = Decimal(self.prices[kind, catalog_ref])
        return CatalogEntry(kind=kind, ref=catalog_ref, name=catalog_ref, unit_price=price)

    def close(self) -> None:
        pass


def _write_settings(root: Path, content: str) -> None:
    from clinicledger.runtime.settings import load_settings

    (root / "config" / "settings.toml").write_text(content)
    load_settings.cache_clear()


def test_open_document_writes_journal(ledger_home: Path) -> None:
    result = run_open_document(OpenDocumentRequest(subject_ref="client-1", owner_ref="doctor-1", document_id="card-1"))

    assert result.status == "opened"
    assert result.document is not None
    assert result.document.currency == "UZS"
    assert (ledger_home / "data" / "documents" / "card-1.beancount").exists()

    again = run_open_document(OpenDocumentRequest(subject_ref="client-1", owner_ref="doctor-1", document_id="card-1"))
    assert again.status == "rejected"
    assert isinstance(again.error, DuplicateDocument)


def test_open_document_uses_configured_currency(ledger_home: Path) -> None:
    _write_settings(ledger_home, 'currency = "USD"\n')

    result = run_open_document(OpenDocumentRequest(subject_ref="client-1", owner_ref="doctor-1"))

    assert result.document is not None
    assert run_show_document(result.document.id).document.currency == "USD"  # type: ignore[union-attr]


def test_medical_card_flow_through_adapters() -> None:
    opened = open_medical_card("client-1", "doctor-1", document_id="card-1")
    assert opened.document is not None and opened.document.kind == "MEDICAL_CARD"

    service = add_service("card-1", "consultation", 2, "doctor-1")
    medication = add_medication("card-1", "amoxicillin-250", 1, "doctor-1", note="5 days")
    assert service.status == "recorded"
    assert medication.status == "recorded"
    assert medication.line_item is not None and medication.line_item.unit_price == Money.of("15000")

    paid = run_record_payment(RecordPaymentRequest(document_id="card-1", amount="40000", method="CASH", actor="m-1"))
    assert paid.status == "applied"
    assert paid.document is not None
    assert paid.document.total == Money.of("115000")
    assert paid.document.status == "PARTLY_PAID"

    over = run_record_payment(RecordPaymentRequest(document_id="card-1", amount="75001", method="CASH", actor="m-1"))
    assert over.status == "rejected"
    assert isinstance(over.error, Overpayment)

    shown = run_show_document("card-1").document
    assert shown is not None
    assert shown.paid == Money.of("40000")
    assert shown.outstanding == Money.of("75000")


def test_feed_sale_is_weighed() -> None:
    open_feed_sale("client-2", "moderator-1", document_id="sale-1")

    result = add_feed_item("sale-1", "royal-canin-adult", "2.5", "moderator-1")

    assert result.status == "recorded"
    assert result.document is not None
    assert result.document.total == Money.of("160000")


def test_nurse_care_card_with_injected_catalog() -> None:
    open_nurse_care_card("client-3", "nurse-1", document_id="care-1")
    catalog = _FixedCatalog({("SERVICE", "nurse-day"): "80000"})

    result = add_service("care-1", "nurse-day", 3, "nurse-1", catalog=catalog)

    assert catalog.lookups == [("SERVICE", "nurse-day")]
    assert result.document is not None
    assert result.document.kind == "NURSE_CARE"
    assert result.document.total == Money.of("240000")


def test_price_is_copied_at_record_time() -> None:
    open_medical_card("client-1", "doctor-1", document_id="card-1")
    add_service("card-1", "consultation", 1, "doctor-1", catalog=_FixedCatalog({("SERVICE", "consultation"): "50000"}))
    add_service("card-1", "consultation", 1, "doctor-1", catalog=_FixedCatalog({("SERVICE", "consultation"): "65000"}))

    document = run_show_document("card-1").document
    assert document is not None
    assert [item.unit_price for item in document.line_items] == [Money.of("50000"), Money.of("65000")]


def test_charge_rejections_are_reported() -> None:
    open_medical_card("client-1", "doctor-1", document_id="card-1")

    unknown = add_service("card-1", "grooming", 1, "doctor-1")
    assert unknown.status == "rejected"
    assert isinstance(unknown.error, NotFound)

    bad_quantity = add_service("card-1", "consultation", 0, "doctor-1")
    assert isinstance(bad_quantity.error, InvalidQuantity)

    missing_doc = add_service("card-404", "consultation", 1, "doctor-1")
    assert isinstance(missing_doc.error, NotFound)


def test_charge_with_explicit_price_skips_catalog() -> None:
    open_medical_card("client-1", "doctor-1", document_id="card-1")

    result = run_add_charge(
        ChargeRequest(
            document_id="card-1",
            kind="SERVICE",
            catalog_ref="house-call",
            quantity=1,
            actor="doctor-1",
            unit_price="90000",
        )
    )

    assert result.status == "recorded"
    assert result.line_item is not None and result.line_item.unit_price == Money.of("90000")


def test_missing_catalog_file_is_reported(ledger_home: Path) -> None:
    (ledger_home / "config" / "catalog.toml").unlink()
    open_medical_card("client-1", "doctor-1", document_id="card-1")

    result = add_service("card-1", "consultation", 1, "doctor-1")

    assert result.status == "rejected"
    assert isinstance(result.error, CatalogUnavailable)


def test_payment_idempotency_replay_and_conflict() -> None:
    open_medical_card("client-1", "doctor-1", document_id="card-1")
    add_service("card-1", "consultation", 1, "doctor-1")
    request = RecordPaymentRequest(
        document_id="card-1", amount="20000", method="CARD", actor="m-1", idempotency_key="till-7"
    )

    first = run_record_payment(request)
    replay = run_record_payment(request)
    conflict = run_record_payment(
        RecordPaymentRequest(document_id="card-1", amount="25000", method="CARD", actor="m-1", idempotency_key="till-7")
    )

    assert first.status == "applied"
    assert replay.status == "replayed"
    assert replay.payment is not None and first.payment is not None
    assert replay.payment.id == first.payment.id
    assert isinstance(conflict.error, IdempotencyConflict)
    assert run_show_document("card-1").document.paid == Money.of("20000")  # type: ignore[union-attr]


def test_closing_and_closed_payment_policy(ledger_home: Path) -> None:
    open_medical_card("client-1", "doctor-1", document_id="card-1")
    add_service("card-1", "consultation", 1, "doctor-1")

    closed = run_close_document(CloseDocumentRequest(document_id="card-1", actor="m-1"))
    assert closed.status == "closed"

    twice = run_close_document(CloseDocumentRequest(document_id="card-1", actor="m-1"))
    assert isinstance(twice.error, DocumentClosed)

    charge = add_service("card-1", "consultation", 1, "doctor-1")
    assert isinstance(charge.error, DocumentClosed)

    late = run_record_payment(RecordPaymentRequest(document_id="card-1", amount="10000", method="CASH", actor="m-1"))
    assert late.status == "applied"

    _write_settings(ledger_home, "[payments]\naccept_on_closed = false\n")
    refused = run_record_payment(
        RecordPaymentRequest(document_id="card-1", amount="10000", method="CASH", actor="m-1")
    )
    assert isinstance(refused.error, DocumentClosed)


def test_adjustment_workflow() -> None:
    open_feed_sale("client-2", "moderator-1", document_id="sale-1")
    add_feed_item("sale-1", "royal-canin-adult", "1", "moderator-1")

    result = run_record_adjustment(
        AdjustmentRequest(document_id="sale-1", amount="4000", note="damaged bag", actor="moderator-1")
    )

    assert result.status == "recorded"
    assert result.document is not None
    assert result.document.total == Money.of("60000")

    too_much = run_record_adjustment(
        AdjustmentRequest(document_id="sale-1", amount="60000.01", note="oops", actor="moderator-1")
    )
    assert too_much.status == "rejected"


def test_listing_and_reports() -> None:
    open_medical_card("client-1", "doctor-1", document_id="card-1")
    add_service("card-1", "consultation", 2, "doctor-1")
    run_record_payment(
        RecordPaymentRequest(document_id="card-1", amount="40000", method="CLICK", actor="m-1", recorded_at=AT)
    )
    open_feed_sale("client-2", "moderator-1", document_id="sale-1")
    add_feed_item("sale-1", "royal-canin-adult", "1", "moderator-1")

    partly = run_list_documents(status="PARTLY_PAID")
    assert [doc.id for doc in partly.documents] == ["card-1"]
    assert [doc.id for doc in run_list_documents(subject_ref="client-2").documents] == ["sale-1"]

    period = resolve_period("month", AT.date())
    revenue = run_revenue_report(period)
    assert revenue.total == Money.of("40000")
    assert revenue.by_day[AT.date()] == Money.of("40000")
    assert len(revenue.by_day) == 31

    methods = run_method_totals_report(period)
    assert methods.totals["CLICK"] == Money.of("40000")

    outstanding = run_outstanding_report("client-1")
    assert outstanding.outstanding == Money.of("60000")
    assert [doc.id for doc in outstanding.documents] == ["card-1"]

    fees = run_fee_summary("client-2")
    assert fees.total_waiting_for_payment == Money.of("64000")


def test_staff_earnings_report_filters_staff() -> None:
    open_medical_card("client-1", "doctor-1", document_id="card-1")
    run_add_charge(
        ChargeRequest(
            document_id="card-1",
            kind="SERVICE",
            catalog_ref="consultation",
            quantity=1,
            actor="doctor-1",
            recorded_at=AT,
        )
    )
    period = resolve_period("day", AT.date())

    everyone = run_staff_earnings_report(period)
    assert [row.staff_ref for row in everyone.rows] == ["doctor-1"]

    nobody = run_staff_earnings_report(period, staff_ref="nurse-9")
    assert len(nobody.rows) == 1
    assert nobody.rows[0].amount == Money.zero()
    assert nobody.rows[0].item_count == 0


def test_concurrent_payments_never_overpay() -> None:
    open_medical_card("client-1", "doctor-1", document_id="card-1")
    add_service("card-1", "consultation", 2, "doctor-1")
    workers = 5
    barrier = threading.Barrier(workers)
    results: list[RecordPaymentResult] = []
    results_lock = threading.Lock()

    def pay(index: int) -> None:
        request = RecordPaymentRequest(document_id="card-1", amount="30000", method="CASH", actor=f"m-{index}")
        barrier.wait()
        result = run_record_payment(request)
        with results_lock:
            results.append(result)

    threads = [threading.Thread(target=pay, args=(index,)) for index in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    applied = [result for result in results if result.status == "applied"]
    rejected = [result for result in results if result.status == "rejected"]
    assert len(results) == workers
    assert len(applied) == 3
    assert len(rejected) == 2
    assert all(isinstance(result.error, Overpayment) for result in rejected)

    document = run_show_document("card-1").document
    assert document is not None
    assert len(document.payments) == 3
    assert document.paid == Money.of("90000")
    assert document.paid <= document.total


def test_blank_references_are_rejected_without_writing() -> None:
    assert isinstance(
        run_open_document(OpenDocumentRequest(subject_ref="  ", owner_ref="doctor-1", document_id="card-1")).error,
        InvalidReference,
    )
    assert run_list_documents().documents == []

    open_medical_card("client-1", "doctor-1", document_id="card-1")
    add_service("card-1", "consultation", 1, "doctor-1")

    blank_actor = run_record_payment(RecordPaymentRequest(document_id="card-1", amount="100", method="CASH", actor=" "))
    spaced_key = run_record_payment(
        RecordPaymentRequest(
            document_id="card-1", amount="100", method="CASH", actor="m-1", idempotency_key="retry  token"
        )
    )
    blank_close = run_close_document(CloseDocumentRequest(document_id="card-1", actor=""))

    assert isinstance(blank_actor.error, InvalidReference)
    assert isinstance(spaced_key.error, InvalidReference)
    assert isinstance(blank_close.error, InvalidReference)
    document = run_show_document("card-1").document
    assert document is not None
    assert document.payments == []
    assert not document.is_closed
    assert [doc.id for doc in run_list_documents().documents] == ["card-1"]
