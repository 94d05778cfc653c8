"""Line-item accrual on billable documents."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation

from clinicledger.domain.billable_document import (
    CHARGE_KINDS,
    BillableDocument,
    LineItem,
    LineItemKind,
    ensure_aware,
    new_id,
    require_choice,
    validate_identifier,
)
from clinicledger.domain.errors import DocumentClosed, ExcessiveAdjustment, InvalidAmount, InvalidQuantity
from clinicledger.domain.money import Money

# Services and medications are counted; inventory (feed) is weighed.
_COUNTED_KINDS = ("SERVICE", "MEDICATION")


def parse_quantity(value: Decimal | int | str, kind: str) -> Decimal:
    """Validate a quantity for the given line-item kind."""
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidQuantity(f"Quantity must be Decimal, int or str, got {type(value).__name__}")
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidQuantity(f"Not a valid quantity: {value!r}") from None
    if not quantity.is_finite() or quantity <= 0:
        raise InvalidQuantity(f"Quantity must be positive, got {value!r}")
    if kind in _COUNTED_KINDS and quantity != quantity.to_integral_value():
        raise InvalidQuantity(f"{kind} quantity must be a whole number, got {value!r}")
    return quantity


def _ensure_open(document: BillableDocument) -> None:
    if document.is_closed:
        raise DocumentClosed(f"Document {document.id} is closed and accepts no charges", document_id=document.id)


def add_line_item(
    document: BillableDocument,
    kind: LineItemKind,
    catalog_ref: str,
    unit_price: Money | Decimal | int | str,
    quantity: Decimal | int | str,
    note: str | None,
    actor: str,
    *,
    recorded_at: datetime | None = None,
    item_id: str | None = None,
) -> LineItem:
    """
    Record one charge against an open document.

    The unit price is copied into the item; later catalog price changes do
    not affect it. Nothing is appended when validation fails.

    Raises:
        InvalidQuantity: quantity <= 0, or fractional for counted kinds.
        InvalidAmount: malformed price, or an ADJUSTMENT kind (use record_adjustment).
        InvalidReference: blank or malformed catalog ref or actor.
        DocumentClosed: the document has been closed.
    """
    if kind == "ADJUSTMENT":
        raise InvalidAmount("Corrections must be recorded with record_adjustment()", document_id=document.id)
    require_choice(kind, CHARGE_KINDS, "line item kind")
    validate_identifier(catalog_ref, "catalog ref")
    validate_identifier(actor, "actor")
    parsed_quantity = parse_quantity(quantity, kind)
    price = Money.of(unit_price)
    _ensure_open(document)

    item = LineItem(
        id=item_id or new_id("li"),
        document_id=document.id,
        kind=kind,
        catalog_ref=catalog_ref,
        unit_price=price,
        quantity=parsed_quantity,
        note=note or None,
        recorded_at=ensure_aware(recorded_at),
        recorded_by=actor,
    )
    # Raises InvalidAmount when the subtotal or new total overflows the decimal context.
    Money.of(document.total.amount + item.subtotal.amount)
    document.line_items.append(item)
    return item


def record_adjustment(
    document: BillableDocument,
    amount: Money | Decimal | int | str,
    note: str | None,
    actor: str,
    *,
    catalog_ref: str = "correction",
    recorded_at: datetime | None = None,
    item_id: str | None = None,
) -> LineItem:
    """
    Record a correction that lowers the document total.

    Existing items are never edited; a correction is a new ADJUSTMENT item.
    The correction cannot exceed what is still outstanding, otherwise the
    document would end up with more paid than charged.
    """
    value = Money.of(amount)
    validate_identifier(catalog_ref, "catalog ref")
    validate_identifier(actor, "actor")
    if value.is_zero():
        raise InvalidAmount("Adjustment amount must be positive", document_id=document.id)
    _ensure_open(document)
    outstanding = document.outstanding
    if value > outstanding:
        raise ExcessiveAdjustment(
            f"Adjustment {value} exceeds outstanding balance {outstanding} on {document.id}",
            document_id=document.id,
        )

    item = LineItem(
        id=item_id or new_id("adj"),
        document_id=document.id,
        kind="ADJUSTMENT",
        catalog_ref=catalog_ref,
        unit_price=value,
        quantity=Decimal("1"),
        note=note or None,
        recorded_at=ensure_aware(recorded_at),
        recorded_by=actor,
    )
    document.line_items.append(item)
    return item
