"""Read access to billable-document journals.

This module is the single place that reads document journals from disk.
Each journal is loaded with `beancount.loader.load_file()` and rebuilt into
a BillableDocument from the metadata of its directives.
"""

from __future__ import annotations

import datetime as dt
import threading
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any

from beancount.core import data
from beancount.loader import load_file

from clinicledger.domain.billable_document import (
    BillableDocument,
    LineItem,
    PaymentEvent,
    validate_identifier,
)
from clinicledger.domain.errors import InvalidReference, NegativeMoney, NotFound
from clinicledger.domain.journal import DOCUMENT_DIRECTIVE, decode_note
from clinicledger.domain.money import Money
from clinicledger.runtime import get_logger, get_paths

logger = get_logger(__name__)


class CorruptJournal(RuntimeError):
    """A journal file exists but cannot be rebuilt into a valid document."""


@dataclass(frozen=True)
class LoadedJournal:
    """Structured result from loading one document journal."""

    path: Path
    document: BillableDocument
    errors: list[Any]


def _lineno(entry: Any) -> int:
    try:
        return int((entry.meta or {}).get("lineno", 0))
    except (TypeError, ValueError):
        return 0


def _custom_event(entry: data.Custom) -> str | None:
    if entry.type != DOCUMENT_DIRECTIVE or not entry.values:
        return None
    first = entry.values[0]
    return str(getattr(first, "value", first))


def _meta_str(meta: dict[str, Any], key: str, path: Path) -> str:
    value = meta.get(key)
    if value is None or str(value) == "":
        raise CorruptJournal(f"{path}:{meta.get('lineno', '?')}: missing metadata {key!r}")
    return str(value)


def _meta_optional(meta: dict[str, Any], key: str) -> str | None:
    value = meta.get(key)
    return str(value) if value not in (None, "") else None


def _note(entry: data.Transaction) -> str | None:
    return decode_note(_meta_optional(entry.meta, "note")) or entry.narration or None


def _meta_time(meta: dict[str, Any], key: str, path: Path) -> dt.datetime:
    raw = _meta_str(meta, key, path)
    try:
        return dt.datetime.fromisoformat(raw)
    except ValueError:
        raise CorruptJournal(f"{path}:{meta.get('lineno', '?')}: bad timestamp {key}={raw!r}") from None


def _line_item_from(entry: data.Transaction, document_id: str, path: Path) -> LineItem:
    meta = entry.meta
    return LineItem(
        id=_meta_str(meta, "line_item_id", path),
        document_id=document_id,
        kind=_meta_str(meta, "kind", path),  # type: ignore[arg-type]
        catalog_ref=_meta_str(meta, "catalog_ref", path),
        unit_price=Money.of(_meta_str(meta, "unit_price", path)),
        quantity=Decimal(_meta_str(meta, "quantity", path)),
        note=_note(entry),
        recorded_at=_meta_time(meta, "recorded_at", path),
        recorded_by=_meta_str(meta, "recorded_by", path),
    )


def _payment_from(entry: data.Transaction, document_id: str, path: Path) -> PaymentEvent:
    meta = entry.meta
    return PaymentEvent(
        id=_meta_str(meta, "payment_id", path),
        document_id=document_id,
        amount=Money.of(_meta_str(meta, "amount", path)),
        method=_meta_str(meta, "method", path),  # type: ignore[arg-type]
        note=_note(entry),
        idempotency_key=_meta_optional(meta, "idempotency_key"),
        recorded_at=_meta_time(meta, "recorded_at", path),
        recorded_by=_meta_str(meta, "recorded_by", path),
    )


def document_from_entries(entries: list[data.Directive], path: Path) -> BillableDocument:
    """Rebuild a document from journal directives, in file order."""
    document: BillableDocument | None = None
    for entry in sorted(entries, key=_lineno):
        if isinstance(entry, data.Custom):
            event = _custom_event(entry)
            if event == "opened":
                if document is not None:
                    raise CorruptJournal(f"{path}: document opened twice")
                meta = entry.meta
                document = BillableDocument(
                    id=_meta_str(meta, "document_id", path),
                    kind=_meta_str(meta, "kind", path),  # type: ignore[arg-type]
                    subject_ref=_meta_str(meta, "subject_ref", path),
                    owner_ref=_meta_str(meta, "owner_ref", path),
                    currency=_meta_str(meta, "currency", path),
                    opened_at=_meta_time(meta, "opened_at", path),
                )
            elif event == "closed":
                if document is None:
                    raise CorruptJournal(f"{path}: closing directive before opening")
                document.closed_at = _meta_time(entry.meta, "closed_at", path)
                document.closed_by = _meta_optional(entry.meta, "closed_by")
            continue

        if not isinstance(entry, data.Transaction):
            continue
        if document is None:
            raise CorruptJournal(f"{path}: transaction before document opening")

        kind = (entry.meta or {}).get("entry")
        if kind == "line_item":
            document.line_items.append(_line_item_from(entry, document.id, path))
        elif kind == "payment":
            document.payments.append(_payment_from(entry, document.id, path))
        else:
            logger.warning("Ignoring unrecognised transaction at %s:%s", path, _lineno(entry))

    if document is None:
        raise CorruptJournal(f"{path}: no billing-document opening directive")

    try:
        document.outstanding
    except NegativeMoney:
        raise CorruptJournal(f"{path}: payments exceed charges") from None
    return document


class DocumentReader:
    """Read-only access to document journals."""

    def __init__(self, documents_dir: Path | None = None) -> None:
        self._documents_dir = documents_dir

    @property
    def documents_dir(self) -> Path:
        return self._documents_dir or get_paths().documents

    def journal_path(self, document_id: str) -> Path:
        return self.documents_dir / f"{validate_identifier(document_id, 'document id')}.beancount"

    def exists(self, document_id: str) -> bool:
        return self.journal_path(document_id).exists()

    def load_journal(self, document_id: str) -> LoadedJournal:
        """Load a document journal from disk."""
        path = self.journal_path(document_id)
        if not path.exists():
            raise NotFound(f"Document {document_id} not found", document_id=document_id)

        entries, errors, _ = load_file(str(path))
        if errors:
            logger.warning("Beancount reported %d error(s) while loading %s", len(errors), path)

        return LoadedJournal(
            path=path,
            document=document_from_entries(list(entries), path),
            errors=list(errors),
        )

    def load(self, document_id: str) -> BillableDocument:
        return self.load_journal(document_id).document

    def list_document_ids(self) -> list[str]:
        if not self.documents_dir.exists():
            return []
        return sorted(path.stem for path in self.documents_dir.glob("*.beancount"))

    def load_all(self) -> list[BillableDocument]:
        """Load every document; unreadable journals are logged and skipped."""
        documents: list[BillableDocument] = []
        for document_id in self.list_document_ids():
            try:
                documents.append(self.load(document_id))
            except (CorruptJournal, InvalidReference) as e:
                logger.warning("Skipping %s: %s", document_id, e)
        return documents


_reader: DocumentReader | None = None
_reader_lock = threading.Lock()


def get_document_reader() -> DocumentReader:
    """Return a singleton document reader instance."""
    global _reader
    with _reader_lock:
        if _reader is None:
            _reader = DocumentReader()
    return _reader
