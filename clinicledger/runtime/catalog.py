"""Catalog lookups for services, medications and feed inventory.

The ledger copies a catalog price into each line item at record time, so a
catalog is only consulted when a charge is recorded.

Two sources are supported:
- TomlCatalog: config/catalog.toml with [[services]], [[medications]] and
  [[feeds]] tables (ref, name, price; feeds are priced per kg).
- HttpCatalog: the clinic's catalog API (services/, medicines/, pet-feeds/).
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

import httpx

from clinicledger.domain.errors import BillingError, InvalidReference, NotFound
from clinicledger.runtime.logging import get_logger
from clinicledger.runtime.paths import get_paths
from clinicledger.runtime.settings import BillingSettings

logger = get_logger(__name__)

_TOML_TABLES = {
    "SERVICE": "services",
    "MEDICATION": "medications",
    "INVENTORY": "feeds",
}

_HTTP_ENDPOINTS = {
    "SERVICE": "services/",
    "MEDICATION": "medicines/",
    "INVENTORY": "pet-feeds/",
}


class CatalogUnavailable(BillingError):
    """The catalog service could not be reached or answered with an error."""

    code = "catalog_unavailable"


@dataclass(frozen=True)
class CatalogEntry:
    """Price information copied into a line item."""

    kind: str
    ref: str
    name: str
    unit_price: Decimal


class Catalog(Protocol):
    def lookup(self, kind: str, catalog_ref: str) -> CatalogEntry: ...

    def close(self) -> None: ...


def _parse_price(raw: object, where: str) -> Decimal:
    try:
        price = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid price {raw!r} in {where}") from None
    if not price.is_finite() or price < 0:
        raise ValueError(f"Invalid price {raw!r} in {where}")
    return price


def _check_kind(kind: str) -> None:
    if kind not in _TOML_TABLES:
        raise InvalidReference(f"Catalog has no entries of kind {kind!r}")


@lru_cache(maxsize=4)
def load_catalog_entries(config_path: str | None = None) -> tuple[CatalogEntry, ...]:
    """
    Load catalog entries from TOML.

    Returns:
        Tuple of entries preserving file order.

    Raises:
        FileNotFoundError: when the catalog file does not exist.
        ValueError: when an entry is missing a ref or has a bad price.
    """
    path = Path(config_path) if config_path is not None else get_paths().catalog
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")

    with open(path, "rb") as f:
        config = tomllib.load(f)

    entries: list[CatalogEntry] = []
    for kind, table in _TOML_TABLES.items():
        for row in config.get(table, []):
            ref = str(row.get("ref", "")).strip()
            if not ref:
                raise ValueError(f"[[{table}]] entry without ref in {path}")
            entries.append(
                CatalogEntry(
                    kind=kind,
                    ref=ref,
                    name=str(row.get("name", ref)).strip() or ref,
                    unit_price=_parse_price(row.get("price"), f"{path} [[{table}]] {ref}"),
                )
            )

    logger.debug("Loaded %d catalog entries from %s", len(entries), path)
    return tuple(entries)


class TomlCatalog:
    """Catalog backed by config/catalog.toml."""

    def __init__(self, config_path: Path | None = None) -> None:
        try:
            entries = load_catalog_entries(str(config_path) if config_path is not None else None)
        except FileNotFoundError as e:
            raise CatalogUnavailable(str(e)) from e
        self._entries = {(entry.kind, entry.ref): entry for entry in entries}

    def lookup(self, kind: str, catalog_ref: str) -> CatalogEntry:
        _check_kind(kind)
        entry = self._entries.get((kind, catalog_ref))
        if entry is None:
            raise NotFound(f"No {kind.lower()} with ref {catalog_ref!r} in catalog")
        return entry

    def close(self) -> None:
        pass


class HttpCatalog:
    """Catalog backed by the clinic's remote catalog API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def _fetch(self, kind: str, catalog_ref: str) -> dict[str, Any]:
        path = f"{_HTTP_ENDPOINTS[kind]}{catalog_ref}/"
        try:
            response = self._client.get(path)
        except httpx.RequestError as e:
            logger.error("Catalog service unavailable: %s", e)
            raise CatalogUnavailable(f"Catalog service unavailable: {e}") from e

        if response.status_code == 404:
            raise NotFound(f"No {kind.lower()} with ref {catalog_ref!r} in catalog")
        if response.status_code != 200:
            logger.error("Catalog service error: %s for %s", response.status_code, path)
            raise CatalogUnavailable(f"Catalog service returned {response.status_code} for {path}")

        payload = response.json()
        if not isinstance(payload, dict):
            raise CatalogUnavailable(f"Unexpected catalog payload for {path}")
        return payload

    def lookup(self, kind: str, catalog_ref: str) -> CatalogEntry:
        _check_kind(kind)
        payload = self._fetch(kind, catalog_ref)

        # Feeds are priced per kg; services and medicines per unit.
        raw_price = payload.get("price_per_kg") if kind == "INVENTORY" else payload.get("price")
        if raw_price is None:
            raw_price = payload.get("price")
        try:
            price = _parse_price(raw_price, f"{self.base_url}{_HTTP_ENDPOINTS[kind]}{catalog_ref}/")
        except ValueError as e:
            raise CatalogUnavailable(str(e)) from e

        name = payload.get("name") or payload.get("product_name") or catalog_ref
        return CatalogEntry(kind=kind, ref=catalog_ref, name=str(name), unit_price=price)


def create_catalog(settings: BillingSettings, config_path: Path | None = None) -> Catalog:
    """Build the catalog selected in settings."""
    if settings.catalog_source == "http":
        logger.debug("Using HTTP catalog at %s", settings.catalog_url)
        return HttpCatalog(settings.catalog_url)
    return TomlCatalog(config_path=config_path)
