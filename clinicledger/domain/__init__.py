"""Core domain models for billable documents.

This package provides the pure billing ledger:
- Money: fixed-precision non-negative amounts
- LineItem, PaymentEvent, BillableDocument: the ledger and its history
- add_line_item, record_adjustment: charge accrual
- apply_payment: payment application with overpayment prevention
- aggregation: read-side projections for dashboards

Usage:
    from clinicledger.domain import BillableDocument, add_line_item, apply_payment
"""

from clinicledger.domain.accrual import add_line_item, record_adjustment
from clinicledger.domain.billable_document import (
    BillableDocument,
    DocumentKind,
    DocumentStatus,
    LineItem,
    LineItemKind,
    PaymentEvent,
    PaymentMethod,
    close_document,
    derive_status,
    open_document,
)
from clinicledger.domain.errors import (
    BillingError,
    DocumentClosed,
    DuplicateDocument,
    ExcessiveAdjustment,
    IdempotencyConflict,
    InvalidAmount,
    InvalidQuantity,
    InvalidReference,
    NegativeMoney,
    NotFound,
    Overpayment,
)
from clinicledger.domain.money import Money, sum_money
from clinicledger.domain.payment_applier import apply_payment

__all__ = [
    # Ledger
    "BillableDocument",
    "LineItem",
    "PaymentEvent",
    "DocumentKind",
    "DocumentStatus",
    "LineItemKind",
    "PaymentMethod",
    "open_document",
    "close_document",
    "derive_status",
    # Operations
    "add_line_item",
    "record_adjustment",
    "apply_payment",
    # Money
    "Money",
    "sum_money",
    # Errors
    "BillingError",
    "InvalidQuantity",
    "InvalidAmount",
    "NegativeMoney",
    "Overpayment",
    "ExcessiveAdjustment",
    "DocumentClosed",
    "NotFound",
    "DuplicateDocument",
    "IdempotencyConflict",
    "InvalidReference",
]
