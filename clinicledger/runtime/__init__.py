"""Runtime infrastructure for clinicledger.

This package provides process/runtime services including:
- Logging setup via get_logger()
- Path resolution via get_paths(), ProjectPaths
- Billing settings via load_settings()
- Catalog lookups via create_catalog(), TomlCatalog, HttpCatalog

Usage:
    from clinicledger.runtime import get_logger, get_paths, load_settings

    logger = get_logger(__name__)
    paths = get_paths()
    print(paths.root, paths.documents)
"""

from clinicledger.runtime.catalog import (
    Catalog,
    CatalogEntry,
    CatalogUnavailable,
    HttpCatalog,
    TomlCatalog,
    create_catalog,
    load_catalog_entries,
)
from clinicledger.runtime.logging import (
    DEFAULT_LOG_LEVEL,
    LOG_FORMAT,
    LOG_FORMAT_DEBUG,
    configure_logging,
    document_logger,
    get_logger,
    level_from_env,
    make_handler,
    set_log_level,
)
from clinicledger.runtime.paths import (
    ProjectPaths,
    get_paths,
    set_project_root,
)
from clinicledger.runtime.settings import BillingSettings, load_settings

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "document_logger",
    "level_from_env",
    "make_handler",
    "set_log_level",
    "DEFAULT_LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FORMAT_DEBUG",
    # Paths
    "get_paths",
    "set_project_root",
    "ProjectPaths",
    # Settings
    "BillingSettings",
    "load_settings",
    # Catalog
    "Catalog",
    "CatalogEntry",
    "CatalogUnavailable",
    "HttpCatalog",
    "TomlCatalog",
    "create_catalog",
    "load_catalog_entries",
]
