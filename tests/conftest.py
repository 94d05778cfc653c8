"""Shared pytest fixtures for clinicledger tests."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterator
from pathlib import Path

import pytest
from _pytest.monkeypatch import MonkeyPatch

from clinicledger.runtime import catalog as catalog_module
from clinicledger.runtime import paths as paths_module
from clinicledger.runtime import settings as settings_module

CATALOG_TOML = """
[[services]]
ref = "consultation"
name = "Consultation"
price = "50000"

[[medications]]
ref = "amoxicillin-250"
name = "Amoxicillin 250 mg"
price = "15000"

[[feeds]]
ref = "royal-canin-adult"
name = "Royal Canin Adult"
price = "64000"
""".lstrip()


@pytest.fixture(autouse=True)
def ledger_home(tmp_path: Path, monkeypatch: MonkeyPatch) -> Iterator[Path]:
    """Point every test at an empty data root with a small catalog."""
    monkeypatch.delenv("CATALOG_SERVICE_URL", raising=False)
    monkeypatch.setattr(paths_module, "_paths", None)
    paths_module.set_project_root(tmp_path)

    config = tmp_path / "config"
    config.mkdir()
    (config / "catalog.toml").write_text(CATALOG_TOML)

    settings_module.load_settings.cache_clear()
    catalog_module.load_catalog_entries.cache_clear()
    yield tmp_path
    settings_module.load_settings.cache_clear()
    catalog_module.load_catalog_entries.cache_clear()


@pytest.fixture
def at() -> dt.datetime:
    """A fixed, timezone-aware recording time."""
    return dt.datetime(2026, 3, 10, 9, 30, tzinfo=dt.UTC)
