"""Pure helpers for rendering billable documents as Beancount journal text.

Each document lives in its own journal file. The file only ever grows:
a header when the document is opened, one balanced transaction per line
item or payment, and a closing directive. Derived values (total, paid,
status) are never written.
"""

from __future__ import annotations

import datetime as dt
from urllib.parse import quote as percent_quote
from urllib.parse import unquote

from clinicledger.domain.billable_document import BillableDocument, LineItem, PaymentEvent

DOCUMENT_DIRECTIVE = "billing-document"

# Accounts are opened far in the past so back-dated entries stay valid.
ACCOUNT_OPEN_DATE = dt.date(1970, 1, 1)

RECEIVABLE_ACCOUNT = "Assets:Receivable:Clinic"
ADJUSTMENT_ACCOUNT = "Income:Clinic:Adjustment"
INCOME_ACCOUNTS = {
    "SERVICE": "Income:Clinic:Service",
    "MEDICATION": "Income:Clinic:Medication",
    "INVENTORY": "Income:Clinic:Inventory",
}
PAYMENT_ACCOUNTS = {
    "CASH": "Assets:Clinic:Cash",
    "CARD": "Assets:Clinic:Card",
    "TRANSFER": "Assets:Clinic:Transfer",
    "CLICK": "Assets:Clinic:Click",
    "PAYME": "Assets:Clinic:Payme",
    "OTHER": "Assets:Clinic:Other",
}


def all_accounts() -> list[str]:
    return [RECEIVABLE_ACCOUNT, *INCOME_ACCOUNTS.values(), ADJUSTMENT_ACCOUNT, *PAYMENT_ACCOUNTS.values()]


def quote(value: str) -> str:
    """Quote a string for a Beancount string literal on a single line."""
    flat = " ".join(str(value).split())
    return '"' + flat.replace("\\", "\\\\").replace('"', '\\"') + '"'


def encode_note(note: str | None) -> str | None:
    """Percent-encode a free-text note so it survives a single-line string literal."""
    if not note:
        return None
    return percent_quote(note, safe=",.:;!?()'/-")


def decode_note(value: str | None) -> str | None:
    return unquote(value) if value else None


def journal_date(moment: dt.datetime) -> str:
    return moment.astimezone(dt.UTC).strftime("%Y-%m-%d")


def _meta_lines(meta: dict[str, str | None]) -> list[str]:
    return [f"  {key}: {quote(value)}" for key, value in meta.items() if value is not None]


def format_document_header(document: BillableDocument) -> str:
    """Render account openings plus the document's opening directive."""
    lines = [f"; billable document {document.id}"]
    open_date = ACCOUNT_OPEN_DATE.isoformat()
    for account in all_accounts():
        lines.append(f"{open_date} open {account} {document.currency}")
    lines.append("")
    lines.append(f'{journal_date(document.opened_at)} custom "{DOCUMENT_DIRECTIVE}" "opened"')
    lines.extend(
        _meta_lines(
            {
                "document_id": document.id,
                "kind": document.kind,
                "subject_ref": document.subject_ref,
                "owner_ref": document.owner_ref,
                "currency": document.currency,
                "opened_at": document.opened_at.isoformat(),
            }
        )
    )
    lines.append("")
    return "\n".join(lines) + "\n"


def format_line_item(item: LineItem, currency: str) -> str:
    """Render one line item as a balanced transaction."""
    amount = item.subtotal.amount
    income_account = ADJUSTMENT_ACCOUNT if item.is_adjustment else INCOME_ACCOUNTS[item.kind]
    receivable_amount = -amount if item.is_adjustment else amount

    lines = [f"{journal_date(item.recorded_at)} * {quote(f'{item.kind} {item.catalog_ref}')} {quote(item.note or '')}"]
    lines.extend(
        _meta_lines(
            {
                "entry": "line_item",
                "line_item_id": item.id,
                "document_id": item.document_id,
                "kind": item.kind,
                "catalog_ref": item.catalog_ref,
                "unit_price": str(item.unit_price.amount),
                "quantity": str(item.quantity),
                "recorded_at": item.recorded_at.isoformat(),
                "recorded_by": item.recorded_by,
                "note": encode_note(item.note),
            }
        )
    )
    lines.append(f"  {RECEIVABLE_ACCOUNT}  {receivable_amount} {currency}")
    lines.append(f"  {income_account}  {-receivable_amount} {currency}")
    lines.append("")
    return "\n".join(lines) + "\n"


def format_payment(payment: PaymentEvent, currency: str) -> str:
    """Render one payment as a balanced transaction."""
    amount = payment.amount.amount
    lines = [f"{journal_date(payment.recorded_at)} * {quote(f'Payment {payment.method}')} {quote(payment.note or '')}"]
    lines.extend(
        _meta_lines(
            {
                "entry": "payment",
                "payment_id": payment.id,
                "document_id": payment.document_id,
                "method": payment.method,
                "amount": str(amount),
                "idempotency_key": payment.idempotency_key,
                "recorded_at": payment.recorded_at.isoformat(),
                "recorded_by": payment.recorded_by,
                "note": encode_note(payment.note),
            }
        )
    )
    lines.append(f"  {PAYMENT_ACCOUNTS[payment.method]}  {amount} {currency}")
    lines.append(f"  {RECEIVABLE_ACCOUNT}  {-amount} {currency}")
    lines.append("")
    return "\n".join(lines) + "\n"


def format_closing(document: BillableDocument) -> str:
    """Render the closing directive for a closed document."""
    if document.closed_at is None:
        raise ValueError(f"Document {document.id} is not closed")
    lines = [f'{journal_date(document.closed_at)} custom "{DOCUMENT_DIRECTIVE}" "closed"']
    lines.extend(
        _meta_lines(
            {
                "document_id": document.id,
                "closed_at": document.closed_at.isoformat(),
                "closed_by": document.closed_by,
            }
        )
    )
    lines.append("")
    return "\n".join(lines) + "\n"


def format_appended(
    document: BillableDocument,
    new_items: list[LineItem],
    new_payments: list[PaymentEvent],
    *,
    closed: bool,
) -> str:
    """Render everything a single update appended to the document."""
    chunks = [format_line_item(item, document.currency) for item in new_items]
    chunks.extend(format_payment(payment, document.currency) for payment in new_payments)
    if closed:
        chunks.append(format_closing(document))
    return "".join(chunks)


def format_document(document: BillableDocument) -> str:
    """Render a complete journal for a document (used on first write)."""
    return format_document_header(document) + format_appended(
        document,
        list(document.line_items),
        list(document.payments),
        closed=document.is_closed,
    )
