"""Runtime loader for billing settings.

settings.toml (all keys optional):

    currency = "UZS"

    [payments]
    accept_on_closed = true

    [catalog]
    source = "toml"          # or "http"
    url = "http://localhost:8002/api/"
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Literal

from clinicledger.runtime.logging import get_logger
from clinicledger.runtime.paths import get_paths

logger = get_logger(__name__)

CatalogSource = Literal["toml", "http"]

DEFAULT_CATALOG_URL = "http://localhost:8002/api/"


@dataclass(frozen=True)
class BillingSettings:
    """Effective billing configuration."""

    currency: str = "UZS"
    accept_payments_on_closed: bool = True
    catalog_source: CatalogSource = "toml"
    catalog_url: str = DEFAULT_CATALOG_URL


@lru_cache(maxsize=4)
def load_settings(config_path: str | None = None) -> BillingSettings:
    """
    Load billing settings from TOML.

    A missing file yields defaults. CATALOG_SERVICE_URL overrides catalog.url.

    Raises:
        ValueError: when a value has the wrong shape.
    """
    path = Path(config_path) if config_path is not None else get_paths().settings
    config: dict[str, object] = {}
    if path.exists():
        with open(path, "rb") as f:
            config = tomllib.load(f)
        logger.debug("Loaded settings from %s", path)
    else:
        logger.debug("Settings file not found, using defaults: %s", path)

    currency = str(config.get("currency", BillingSettings.currency)).strip().upper()
    if not currency.isalnum() or not currency[:1].isalpha():
        raise ValueError(f"Invalid currency in {path}: {currency!r}")

    payments = config.get("payments", {})
    catalog = config.get("catalog", {})
    if not isinstance(payments, dict) or not isinstance(catalog, dict):
        raise ValueError(f"[payments] and [catalog] must be tables in {path}")

    accept_on_closed = payments.get("accept_on_closed", True)
    if not isinstance(accept_on_closed, bool):
        raise ValueError(f"payments.accept_on_closed must be a boolean in {path}")

    source = str(catalog.get("source", "toml")).strip().lower()
    if source not in ("toml", "http"):
        raise ValueError(f"catalog.source must be 'toml' or 'http' in {path}, got {source!r}")

    catalog_url = os.environ.get("CATALOG_SERVICE_URL") or str(catalog.get("url", DEFAULT_CATALOG_URL))

    return BillingSettings(
        currency=currency,
        accept_payments_on_closed=accept_on_closed,
        catalog_source=source,  # type: ignore[arg-type]
        catalog_url=catalog_url,
    )
