"""Thin adapters for the clinic's billed cases.

Medical cards, nurse-care cards and feed sales are all billable documents
that differ only in their kind tag and in what they are charged for:
- medical cards: services and medications, counted in whole units
- nurse-care cards: services
- feed sales: feed inventory, sold by the kilogram
"""

from __future__ import annotations

from decimal import Decimal

from clinicledger.application.billing.charges import ChargeRequest, ChargeResult, run_add_charge
from clinicledger.application.billing.documents import (
    OpenDocumentRequest,
    OpenDocumentResult,
    run_open_document,
)
from clinicledger.runtime import Catalog


def open_medical_card(client_ref: str, doctor_ref: str, *, document_id: str | None = None) -> OpenDocumentResult:
    return run_open_document(
        OpenDocumentRequest(subject_ref=client_ref, owner_ref=doctor_ref, kind="MEDICAL_CARD", document_id=document_id)
    )


def open_nurse_care_card(client_ref: str, nurse_ref: str, *, document_id: str | None = None) -> OpenDocumentResult:
    return run_open_document(
        OpenDocumentRequest(subject_ref=client_ref, owner_ref=nurse_ref, kind="NURSE_CARE", document_id=document_id)
    )


def open_feed_sale(customer_ref: str, seller_ref: str, *, document_id: str | None = None) -> OpenDocumentResult:
    return run_open_document(
        OpenDocumentRequest(subject_ref=customer_ref, owner_ref=seller_ref, kind="FEED_SALE", document_id=document_id)
    )


def add_service(
    document_id: str,
    service_ref: str,
    quantity: int | str,
    actor: str,
    *,
    note: str | None = None,
    catalog: Catalog | None = None,
) -> ChargeResult:
    """Charge a catalog service at its current price."""
    request = ChargeRequest(
        document_id=document_id,
        kind="SERVICE",
        catalog_ref=service_ref,
        quantity=quantity,
        actor=actor,
        note=note,
    )
    return run_add_charge(request, catalog)


def add_medication(
    document_id: str,
    medication_ref: str,
    quantity: int | str,
    actor: str,
    *,
    note: str | None = None,
    catalog: Catalog | None = None,
) -> ChargeResult:
    """Charge a catalog medication at its current price."""
    request = ChargeRequest(
        document_id=document_id,
        kind="MEDICATION",
        catalog_ref=medication_ref,
        quantity=quantity,
        actor=actor,
        note=note,
    )
    return run_add_charge(request, catalog)


def add_feed_item(
    document_id: str,
    feed_ref: str,
    quantity_kg: Decimal | str,
    actor: str,
    *,
    note: str | None = None,
    catalog: Catalog | None = None,
) -> ChargeResult:
    """Charge feed by weight at the catalog price per kg."""
    request = ChargeRequest(
        document_id=document_id,
        kind="INVENTORY",
        catalog_ref=feed_ref,
        quantity=quantity_kg,
        actor=actor,
        note=note,
    )
    return run_add_charge(request, catalog)
