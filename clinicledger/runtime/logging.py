"""Logging for clinicledger.

All loggers live under the ``clinicledger`` namespace. Records logged through
``document_logger()`` carry the document id, so every line about a journal
write can be traced back to the document it touched:

    2026-03-10 09:30:00,001 INFO [clinicledger.ledger_store.writer] {card-1} Updated ...

Usage:
    from clinicledger.runtime import document_logger, get_logger

    logger = get_logger(__name__)
    document_logger(logger, "card-1").info("Recorded payment %s", payment_id)

Environment variables:
    CLINICLEDGER_LOG_LEVEL: DEBUG, INFO, WARNING or ERROR. Default: INFO
    CLINICLEDGER_LOG_FILE: Optional path; billing events are appended there as well as to stderr.
"""

import logging
import os
import sys
from typing import IO

DEFAULT_LOG_LEVEL = logging.INFO

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(document_tag)s%(message)s"
LOG_FORMAT_DEBUG = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(document_tag)s%(message)s"

LOGGER_NAMESPACE = "clinicledger"

_configured = False


class DocumentTagFilter(logging.Filter):
    """Render the optional ``document_id`` extra as a ``{id} `` prefix."""

    def filter(self, record: logging.LogRecord) -> bool:
        document_id = getattr(record, "document_id", None)
        record.document_tag = f"{{{document_id}}} " if document_id else ""
        return True


def level_from_env(default: int = DEFAULT_LOG_LEVEL) -> int:
    name = os.environ.get("CLINICLEDGER_LOG_LEVEL", "").strip().upper()
    if name == "WARN":
        name = "WARNING"
    return logging.getLevelNamesMapping().get(name, default) if name else default


def _formatter(level: int) -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT_DEBUG if level <= logging.DEBUG else LOG_FORMAT)


def make_handler(stream: IO[str] | None = None, *, level: int = DEFAULT_LOG_LEVEL) -> logging.Handler:
    """Stream handler with the clinicledger format and document tagging."""
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(_formatter(level))
    handler.addFilter(DocumentTagFilter())
    return handler


def configure_logging(level: int | None = None) -> None:
    """Attach handlers to the namespace logger once per process."""
    global _configured
    if _configured:
        return

    if level is None:
        level = level_from_env()

    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.setLevel(level)
    namespace.addHandler(make_handler(level=level))

    log_file = os.environ.get("CLINICLEDGER_LOG_FILE")
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(_formatter(level))
        file_handler.addFilter(DocumentTagFilter())
        namespace.addHandler(file_handler)

    namespace.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def document_logger(logger: logging.Logger, document_id: str) -> logging.LoggerAdapter:
    """Wrap ``logger`` so each record names the document it concerns."""
    return logging.LoggerAdapter(logger, {"document_id": document_id})


def set_log_level(level: int) -> None:
    """Change the level of the namespace logger and its handlers' format."""
    namespace = logging.getLogger(LOGGER_NAMESPACE)
    namespace.setLevel(level)
    for handler in namespace.handlers:
        handler.setFormatter(_formatter(level))
