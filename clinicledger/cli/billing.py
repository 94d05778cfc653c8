"""Billing command handlers used by the unified CLI."""

import argparse
import datetime as dt

from clinicledger.domain.billable_document import BillableDocument
from clinicledger.domain.errors import BillingError
from clinicledger.runtime import get_logger

logger = get_logger(__name__)


def _report_rejection(action: str, error: BillingError | None) -> int:
    if error is None:
        print(f"Error: {action} failed.")
    else:
        logger.debug("%s rejected: %s", action, error.code)
        print(f"Error: {error.message}")
    return 1


def _print_document(document: BillableDocument, *, detailed: bool = True) -> None:
    closed = f"  closed {document.closed_at:%Y-%m-%d} by {document.closed_by}" if document.closed_at else ""
    print(f"{document.id}  [{document.kind}]  client={document.subject_ref}  owner={document.owner_ref}{closed}")
    print(
        f"  total {document.total} {document.currency}  paid {document.paid}  "
        f"outstanding {document.outstanding}  status {document.status}"
    )
    if not detailed:
        return

    if document.line_items:
        print(f"\nItems ({len(document.line_items)}):")
        for i, item in enumerate(document.line_items, 1):
            sign = "-" if item.is_adjustment else " "
            note = f"  ({item.note})" if item.note else ""
            print(
                f"  {i:>3}. {item.recorded_at:%Y-%m-%d}  {item.kind:<10} {item.catalog_ref:<20} "
                f"{item.unit_price:>12} x {item.quantity:<6} {sign}{item.subtotal:>12}  {item.recorded_by}{note}"
            )
    if document.payments:
        print(f"\nPayments ({len(document.payments)}):")
        for i, payment in enumerate(document.payments, 1):
            note = f"  ({payment.note})" if payment.note else ""
            print(
                f"  {i:>3}. {payment.recorded_at:%Y-%m-%d}  {payment.method:<8} {payment.amount:>12}  "
                f"{payment.recorded_by}{note}"
            )


def cmd_open(args: argparse.Namespace) -> int:
    from clinicledger.application.billing.documents import OpenDocumentRequest, run_open_document

    result = run_open_document(
        OpenDocumentRequest(
            subject_ref=args.subject,
            owner_ref=args.owner,
            kind=args.kind,
            document_id=args.id,
        )
    )
    if result.status != "opened" or result.document is None:
        return _report_rejection("open", result.error)
    print(f"Opened {result.document.id}")
    return 0


def cmd_charge(args: argparse.Namespace) -> int:
    from clinicledger.application.billing.charges import (
        AdjustmentRequest,
        ChargeRequest,
        run_add_charge,
        run_record_adjustment,
    )

    if args.charge_type == "adjust":
        result = run_record_adjustment(
            AdjustmentRequest(
                document_id=args.document_id,
                amount=args.amount,
                note=args.note,
                actor=args.actor,
            )
        )
    else:
        kind = {"service": "SERVICE", "medication": "MEDICATION", "feed": "INVENTORY"}[args.charge_type]
        result = run_add_charge(
            ChargeRequest(
                document_id=args.document_id,
                kind=kind,  # type: ignore[arg-type]
                catalog_ref=args.ref,
                quantity=args.quantity,
                actor=args.actor,
                note=args.note,
                unit_price=args.price,
            )
        )

    if result.status != "recorded" or result.document is None or result.line_item is None:
        return _report_rejection("charge", result.error)
    item = result.line_item
    print(f"Recorded {item.kind} {item.catalog_ref}: {item.subtotal} ({item.id})")
    _print_document(result.document, detailed=False)
    return 0


def cmd_pay(args: argparse.Namespace) -> int:
    from clinicledger.application.billing.payments import RecordPaymentRequest, run_record_payment

    result = run_record_payment(
        RecordPaymentRequest(
            document_id=args.document_id,
            amount=args.amount,
            method=args.method,
            actor=args.actor,
            note=args.note,
            idempotency_key=args.key,
        )
    )
    if result.status == "rejected" or result.document is None or result.payment is None:
        return _report_rejection("payment", result.error)

    if result.status == "replayed":
        print(f"Payment already recorded as {result.payment.id}; nothing written.")
    else:
        print(f"Recorded payment {result.payment.id}: {result.payment.amount} {result.payment.method}")
    _print_document(result.document, detailed=False)
    return 0


def cmd_close(args: argparse.Namespace) -> int:
    from clinicledger.application.billing.documents import CloseDocumentRequest, run_close_document

    result = run_close_document(CloseDocumentRequest(document_id=args.document_id, actor=args.actor))
    if result.status != "closed" or result.document is None:
        return _report_rejection("close", result.error)
    print(f"Closed {result.document.id}")
    if result.document.outstanding:
        print(f"Note: {result.document.outstanding} {result.document.currency} is still outstanding.")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    from clinicledger.application.billing.documents import run_show_document

    result = run_show_document(args.document_id)
    if result.document is None:
        return _report_rejection("show", result.error)
    _print_document(result.document)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    from clinicledger.application.billing.documents import run_list_documents

    listing = run_list_documents(status=args.status, subject_ref=args.client, include_closed=not args.open_only)
    if not listing.documents:
        print("No documents found.")
        return 0

    print(f"Documents ({len(listing.documents)}):")
    print("-" * 80)
    for document in listing.documents:
        print(
            f"{document.id:<24} {document.kind:<13} {document.subject_ref:<16} "
            f"{document.total:>12} {document.paid:>12}  {document.status}"
        )
    print("-" * 80)
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    from clinicledger.application.billing.reports import (
        resolve_period,
        run_fee_summary,
        run_method_totals_report,
        run_outstanding_report,
        run_revenue_report,
        run_staff_earnings_report,
    )

    if args.report_type == "outstanding":
        outstanding = run_outstanding_report(args.client)
        print(f"Outstanding for {args.client}: {outstanding.outstanding}")
        for document in outstanding.documents:
            print(f"  {document.id:<24} {document.outstanding:>12}  {document.status}")
        return 0

    if args.report_type == "fees":
        summary = run_fee_summary(args.client)
        print(f"Fees for {summary.client_ref}:")
        print(f"  total charged           {summary.total_all:>12}")
        print(f"  unpaid                  {summary.total_unpaid:>12}")
        print(f"  waiting for payment     {summary.total_waiting_for_payment:>12}")
        return 0

    on = args.on or dt.datetime.now(dt.UTC).date()
    period = resolve_period(args.period, on)
    span = f"{period.start:%Y-%m-%d} .. {period.end - dt.timedelta(days=1):%Y-%m-%d}"

    if args.report_type == "revenue":
        revenue = run_revenue_report(period)
        print(f"Revenue {span}: {revenue.total}")
        if len(revenue.by_day) > 1:
            for day, amount in revenue.by_day.items():
                print(f"  {day.isoformat()}  {amount:>12}")
        return 0

    if args.report_type == "methods":
        totals = run_method_totals_report(period)
        print(f"Payments by method {span}:")
        for method, amount in totals.totals.items():
            print(f"  {method:<10} {amount:>12}")
        print(f"  {'TOTAL':<10} {totals.grand_total:>12}")
        return 0

    if args.report_type == "earnings":
        earnings = run_staff_earnings_report(period, staff_ref=args.staff)
        print(f"Staff earnings {span}:")
        if not earnings.rows:
            print("  (none)")
        for row in earnings.rows:
            print(f"  {row.staff_ref:<20} {row.item_count:>4} item(s) {row.amount:>12}")
        return 0

    print(f"Unsupported report type: {args.report_type}")
    return 1


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI billing server."""
    import uvicorn

    from clinicledger.server.app import app

    print(f"Starting billing server on {args.host}:{args.port}")
    print("Press Ctrl+C to stop")

    uvicorn.run(app, host=args.host, port=args.port)
