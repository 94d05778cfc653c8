"""Privileged document journal mutation helpers."""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

from beancount.loader import load_file

from clinicledger.domain.billable_document import BillableDocument
from clinicledger.domain.errors import BillingError, DuplicateDocument
from clinicledger.domain.journal import format_appended, format_document
from clinicledger.ledger_store.reader import (
    CorruptJournal,
    DocumentReader,
    document_from_entries,
    get_document_reader,
)
from clinicledger.runtime import document_logger, get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def validate_journal(path: Path, expected: BillableDocument | None = None) -> list[Any]:
    """Run Beancount loader validation and return errors (if any).

    With `expected`, the journal must also rebuild into exactly that document,
    so text the reader would reject or reinterpret is caught before it stays on disk.
    """
    entries, load_errors, _ = load_file(str(path))
    errors: list[Any] = list(load_errors)
    if expected is not None and not errors:
        try:
            rebuilt = document_from_entries(list(entries), path)
        except (CorruptJournal, BillingError) as e:
            errors.append(e)
        else:
            if rebuilt != expected:
                errors.append(f"document {expected.id} does not read back as written")
    if errors:
        logger.warning("Beancount validation found %d error(s) in %s", len(errors), path)
    return errors


def _raise_on_errors(path: Path, errors: list[Any]) -> None:
    if errors:
        error_preview = "; ".join(str(err) for err in errors[:2])
        raise RuntimeError(f"journal validation failed for {path}: {error_preview}")


class DocumentWriter:
    """Privileged write access for document journals.

    Every mutation is a read-modify-write of one journal under that
    document's lock. Only the directives a mutation appended are written,
    and the file is restored if the result does not load cleanly.
    """

    def __init__(self, reader: DocumentReader | None = None) -> None:
        self.reader = reader or get_document_reader()
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, document_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(document_id)
            if lock is None:
                lock = self._locks[document_id] = threading.Lock()
            return lock

    def create(self, document: BillableDocument) -> BillableDocument:
        """Write a new document journal. Fails if the id is taken."""
        path = self.reader.journal_path(document.id)
        log = document_logger(logger, document.id)
        with self._lock_for(document.id):
            if path.exists():
                raise DuplicateDocument(f"Document {document.id} already exists", document_id=document.id)

            path.parent.mkdir(parents=True, exist_ok=True)
            try:
                path.write_text(format_document(document))
                _raise_on_errors(path, validate_journal(path, document))
            except Exception:
                if path.exists():
                    path.unlink()
                log.warning("Discarded journal after failed create")
                raise

        log.info("Opened %s for %s", document.kind, document.subject_ref)
        return document

    def update(
        self,
        document_id: str,
        mutate: Callable[[BillableDocument], T],
    ) -> tuple[BillableDocument, T]:
        """
        Load a document, apply `mutate` to it and persist what it appended.

        A BillingError raised by `mutate` leaves the journal untouched.
        Any failure while writing restores the journal to its original text.

        Returns:
            The updated document and whatever `mutate` returned.
        """
        log = document_logger(logger, document_id)
        with self._lock_for(document_id):
            loaded = self.reader.load_journal(document_id)
            document = loaded.document
            items_before = len(document.line_items)
            payments_before = len(document.payments)
            was_closed = document.is_closed

            outcome = mutate(document)

            appended = format_appended(
                document,
                document.line_items[items_before:],
                document.payments[payments_before:],
                closed=document.is_closed and not was_closed,
            )
            if not appended:
                log.debug("No changes to write")
                return document, outcome

            path = loaded.path
            original = path.read_text()
            try:
                with open(path, "a") as f:
                    f.write(appended)
                _raise_on_errors(path, validate_journal(path, document))
            except Exception:
                path.write_text(original)
                log.warning("Restored journal after failed write")
                raise

        log.info("Updated: total=%s paid=%s status=%s", document.total, document.paid, document.status)
        return document, outcome


_writer: DocumentWriter | None = None
_writer_lock = threading.Lock()


def get_document_writer() -> DocumentWriter:
    """Return a singleton document writer instance."""
    global _writer
    with _writer_lock:
        if _writer is None:
            _writer = DocumentWriter()
    return _writer
