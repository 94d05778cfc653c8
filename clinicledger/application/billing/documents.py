"""Document lifecycle workflow orchestration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from clinicledger.domain.billable_document import (
    BillableDocument,
    DocumentKind,
    DocumentStatus,
    close_document,
    open_document,
)
from clinicledger.domain.errors import BillingError
from clinicledger.ledger_store import get_document_reader, get_document_writer
from clinicledger.runtime import document_logger, get_logger, load_settings

logger = get_logger(__name__)

OpenStatus = Literal["opened", "rejected"]
CloseStatus = Literal["closed", "rejected"]
ShowStatus = Literal["found", "not_found"]


@dataclass(frozen=True)
class OpenDocumentRequest:
    """Inputs for opening a billable document."""

    subject_ref: str
    owner_ref: str
    kind: DocumentKind = "GENERIC"
    document_id: str | None = None
    opened_at: datetime | None = None


@dataclass(frozen=True)
class OpenDocumentResult:
    """Outcome from opening a billable document."""

    status: OpenStatus
    document: BillableDocument | None = None
    error: BillingError | None = None


@dataclass(frozen=True)
class CloseDocumentRequest:
    """Inputs for closing a billable document."""

    document_id: str
    actor: str
    closed_at: datetime | None = None


@dataclass(frozen=True)
class CloseDocumentResult:
    """Outcome from closing a billable document."""

    status: CloseStatus
    document: BillableDocument | None = None
    error: BillingError | None = None


@dataclass(frozen=True)
class ShowDocumentResult:
    status: ShowStatus
    document: BillableDocument | None = None
    error: BillingError | None = None


@dataclass(frozen=True)
class DocumentListing:
    """Documents matching a listing filter, in id order."""

    documents: list[BillableDocument]


def run_open_document(request: OpenDocumentRequest) -> OpenDocumentResult:
    """Open an empty document and write its journal header."""
    settings = load_settings()
    try:
        document = open_document(
            subject_ref=request.subject_ref,
            owner_ref=request.owner_ref,
            kind=request.kind,
            document_id=request.document_id,
            currency=settings.currency,
            opened_at=request.opened_at,
        )
        get_document_writer().create(document)
    except BillingError as exc:
        logger.info("Open rejected (%s): %s", exc.code, exc)
        return OpenDocumentResult(status="rejected", error=exc)
    return OpenDocumentResult(status="opened", document=document)


def run_close_document(request: CloseDocumentRequest) -> CloseDocumentResult:
    """Close a document. Outstanding balances do not block closing."""
    try:
        document, _ = get_document_writer().update(
            request.document_id,
            lambda doc: close_document(doc, request.actor, closed_at=request.closed_at),
        )
    except BillingError as exc:
        document_logger(logger, request.document_id).info("Close rejected (%s): %s", exc.code, exc)
        return CloseDocumentResult(status="rejected", error=exc)

    if document.outstanding:
        document_logger(logger, document.id).info("Closed with %s outstanding", document.outstanding)
    return CloseDocumentResult(status="closed", document=document)


def run_show_document(document_id: str) -> ShowDocumentResult:
    try:
        document = get_document_reader().load(document_id)
    except BillingError as exc:
        return ShowDocumentResult(status="not_found", error=exc)
    return ShowDocumentResult(status="found", document=document)


def run_list_documents(
    *,
    status: DocumentStatus | None = None,
    subject_ref: str | None = None,
    include_closed: bool = True,
) -> DocumentListing:
    """Load documents, optionally filtered by derived status or client."""
    documents = get_document_reader().load_all()
    if status is not None:
        documents = [doc for doc in documents if doc.status == status]
    if subject_ref is not None:
        documents = [doc for doc in documents if doc.subject_ref == subject_ref]
    if not include_closed:
        documents = [doc for doc in documents if not doc.is_closed]
    return DocumentListing(documents=documents)
