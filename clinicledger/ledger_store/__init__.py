"""Privileged journal storage for billable documents."""

from clinicledger.ledger_store.reader import (
    CorruptJournal,
    DocumentReader,
    LoadedJournal,
    document_from_entries,
    get_document_reader,
)
from clinicledger.ledger_store.writer import DocumentWriter, get_document_writer, validate_journal

__all__ = [
    "CorruptJournal",
    "DocumentReader",
    "DocumentWriter",
    "LoadedJournal",
    "document_from_entries",
    "get_document_reader",
    "get_document_writer",
    "validate_journal",
]
