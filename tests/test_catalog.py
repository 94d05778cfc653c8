"""Tests for TOML and HTTP catalog lookups."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

from clinicledger.domain.errors import InvalidReference, NotFound
from clinicledger.runtime.catalog import (
    CatalogUnavailable,
    HttpCatalog,
    TomlCatalog,
    create_catalog,
    load_catalog_entries,
)
from clinicledger.runtime.settings import BillingSettings


def test_toml_catalog_reads_project_catalog() -> None:
    catalog = TomlCatalog()

    service = catalog.lookup("SERVICE", "consultation")
    assert service.name == "Consultation"
    assert service.unit_price == Decimal("50000")

    feed = catalog.lookup("INVENTORY", "royal-canin-adult")
    assert feed.unit_price == Decimal("64000")


def test_toml_catalog_unknown_ref_and_kind() -> None:
    catalog = TomlCatalog()
    with pytest.raises(NotFound):
        catalog.lookup("MEDICATION", "consultation")
    with pytest.raises(InvalidReference):
        catalog.lookup("ADJUSTMENT", "correction")


def test_missing_catalog_file(tmp_path: Path) -> None:
    missing = tmp_path / "nowhere.toml"
    with pytest.raises(FileNotFoundError):
        load_catalog_entries(str(missing))
    with pytest.raises(CatalogUnavailable):
        TomlCatalog(config_path=missing)


@pytest.mark.parametrize(
    "content",
    [
        '[[services]]\nname = "No ref"\nprice = "10"\n',
        '[[services]]\nref = "x"\nprice = "-1"\n',
        '[[medications]]\nref = "x"\nprice = "cheap"\n',
    ],
)
def test_invalid_catalog_entries(tmp_path: Path, content: str) -> None:
    path = tmp_path / "catalog.toml"
    path.write_text(content)
    with pytest.raises(ValueError):
        load_catalog_entries(str(path))


def _http_catalog(handler) -> HttpCatalog:
    return HttpCatalog("http://catalog.test/api", transport=httpx.MockTransport(handler))


def test_http_catalog_reads_price_fields() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if request.url.path == "/api/pet-feeds/7/":
            return httpx.Response(200, json={"product_name": "Royal Canin", "price_per_kg": "64000.00"})
        return httpx.Response(200, json={"name": "Amoxicillin", "price": 15000})

    catalog = _http_catalog(handler)
    feed = catalog.lookup("INVENTORY", "7")
    medicine = catalog.lookup("MEDICATION", "3")
    catalog.close()

    assert seen == ["/api/pet-feeds/7/", "/api/medicines/3/"]
    assert feed.name == "Royal Canin"
    assert feed.unit_price == Decimal("64000.00")
    assert medicine.unit_price == Decimal("15000")


def test_http_catalog_not_found_and_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/missing/"):
            return httpx.Response(404, json={"detail": "Not found."})
        if request.url.path.endswith("/broken/"):
            return httpx.Response(200, content=json.dumps([1, 2]).encode())
        return httpx.Response(500)

    catalog = _http_catalog(handler)
    with pytest.raises(NotFound):
        catalog.lookup("SERVICE", "missing")
    with pytest.raises(CatalogUnavailable):
        catalog.lookup("SERVICE", "broken")
    with pytest.raises(CatalogUnavailable):
        catalog.lookup("SERVICE", "down")


def test_http_catalog_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CatalogUnavailable):
        _http_catalog(handler).lookup("SERVICE", "1")


def test_create_catalog_follows_settings() -> None:
    assert isinstance(create_catalog(BillingSettings()), TomlCatalog)

    catalog = create_catalog(BillingSettings(catalog_source="http", catalog_url="http://catalog.test/api/"))
    assert isinstance(catalog, HttpCatalog)
    assert catalog.base_url == "http://catalog.test/api/"
    catalog.close()
