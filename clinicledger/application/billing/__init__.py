"""Billing workflows."""

from clinicledger.application.billing.adapters import (
    add_feed_item,
    add_medication,
    add_service,
    open_feed_sale,
    open_medical_card,
    open_nurse_care_card,
)
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
    resolve_period,
    run_fee_summary,
    run_method_totals_report,
    run_outstanding_report,
    run_revenue_report,
    run_staff_earnings_report,
)

__all__ = [
    "OpenDocumentRequest",
    "run_open_document",
    "CloseDocumentRequest",
    "run_close_document",
    "run_show_document",
    "run_list_documents",
    "ChargeRequest",
    "ChargeResult",
    "run_add_charge",
    "AdjustmentRequest",
    "run_record_adjustment",
    "RecordPaymentRequest",
    "run_record_payment",
    "open_medical_card",
    "open_nurse_care_card",
    "open_feed_sale",
    "add_service",
    "add_medication",
    "add_feed_item",
    "resolve_period",
    "run_revenue_report",
    "run_outstanding_report",
    "run_staff_earnings_report",
    "run_method_totals_report",
    "run_fee_summary",
]
