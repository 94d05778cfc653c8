"""Centralized path management for clinicledger.

This module provides a single source of truth for all project paths,
so workflows never assemble data or config locations themselves.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_project_root() -> Path:
    """Determine the data root: $CLINICLEDGER_HOME or the working directory."""
    env_root = os.environ.get("CLINICLEDGER_HOME", "").strip()
    if env_root:
        return Path(env_root).expanduser()
    return Path.cwd()


@dataclass
class ProjectPaths:
    """Container for all project-related paths.

    All paths are computed relative to the project root, ensuring consistency
    across all modules regardless of where they are imported from.
    """

    root: Path = field(default_factory=_get_project_root)

    def __post_init__(self) -> None:
        self.root = self.root.resolve()

    # --- Configuration paths ---
    @property
    def config(self) -> Path:
        """Configuration directory (config/)."""
        return self.root / "config"

    @property
    def settings(self) -> Path:
        """Billing settings TOML file."""
        return self.config / "settings.toml"

    @property
    def catalog(self) -> Path:
        """Local service/medication/feed catalog TOML file."""
        return self.config / "catalog.toml"

    # --- Data paths ---
    @property
    def data(self) -> Path:
        """Data directory (data/)."""
        return self.root / "data"

    @property
    def documents(self) -> Path:
        """Per-document Beancount journals."""
        return self.data / "documents"

    def document_journal(self, document_id: str) -> Path:
        """Journal file for one billable document."""
        return self.documents / f"{document_id}.beancount"

    def ensure_data_directories(self) -> None:
        """Create data directories if they don't exist."""
        self.documents.mkdir(parents=True, exist_ok=True)


# Module-level singleton
_paths: ProjectPaths | None = None


def get_paths() -> ProjectPaths:
    """Get the singleton ProjectPaths instance.

    Returns:
        The global ProjectPaths instance.
    """
    global _paths
    if _paths is None:
        _paths = ProjectPaths()
    return _paths


def set_project_root(root: Path | str) -> ProjectPaths:
    """Point the singleton at a different root (tests, CLI --home).

    Args:
        root: New project root directory.
    """
    global _paths
    _paths = ProjectPaths(root=Path(root))
    return _paths
