"""
Configuration document (``rindexer.yaml``) loading and caching.

The document is owned by the external indexer; this service only requires
three things of it before it will start:

* a top-level ``name`` (the project name, used to derive Postgres schema
  names, at most ``max_name_length`` characters),
* ``storage.postgres.enabled: true``,
* a YAML mapping at the top level.

Everything else (``networks``, ``contracts``, ``graphql`` ...) is passed
through untouched.

Examples:
    >>> config = load_indexer_config(Path("/workspace/rindexer.yaml"))
    >>> config.project_name
    'catapulta'

    >>> cache = ProjectConfigCache(Path("/workspace/rindexer.yaml"))
    >>> cache.project_name()    # reads and validates once
    'catapulta'
    >>> cache.invalidate()      # called by the merger after every write

Tags:
    configuration, yaml, cache, indexer-spine
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from indexer_spine.core.errors import (
    ConfigurationError,
    PostgresNotEnabledError,
    ProjectNameMissingError,
    ProjectNameTooLongError,
)

DEFAULT_MAX_NAME_LENGTH = 32


@dataclass(frozen=True)
class IndexerConfig:
    """A validated configuration document."""

    project_name: str
    document: dict[str, Any]
    path: Path

    @property
    def contracts(self) -> list[dict[str, Any]]:
        return list(self.document.get("contracts") or [])


def read_document(path: Path) -> dict[str, Any]:
    """Read and parse the YAML document without validating its contents."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Could not read rindexer.yaml: {path} does not exist", cause=e) from e
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read rindexer.yaml: {e}", cause=e) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Could not read rindexer.yaml: expected a mapping at the top level, got {type(data).__name__}"
        )
    return data


def validate_document(
    data: dict[str, Any],
    *,
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> str:
    """Check the startup requirements and return the project name."""
    name = data.get("name")
    if not name or not isinstance(name, str):
        raise ProjectNameMissingError()
    if len(name) > max_name_length:
        raise ProjectNameTooLongError(name, max_name_length)

    storage = data.get("storage") or {}
    postgres = storage.get("postgres") if isinstance(storage, dict) else None
    if not isinstance(postgres, dict) or postgres.get("enabled") is not True:
        raise PostgresNotEnabledError()
    return name


def load_indexer_config(
    path: Path,
    *,
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> IndexerConfig:
    """Load and validate the configuration document.

    Raises:
        ProjectNameMissingError: no ``name``
        ProjectNameTooLongError: ``name`` longer than ``max_name_length``
        PostgresNotEnabledError: ``storage.postgres.enabled`` is not true
        ConfigurationError: file missing, unreadable or not a mapping
    """
    data = read_document(path)
    project_name = validate_document(data, max_name_length=max_name_length)
    return IndexerConfig(project_name=project_name, document=data, path=path)


class ProjectConfigCache:
    """Read-once cache of the validated configuration document.

    Readers call :meth:`get` / :meth:`project_name`; the configuration merger
    calls :meth:`invalidate` after every write so the next read sees the new
    document.
    """

    def __init__(self, path: Path, *, max_name_length: int = DEFAULT_MAX_NAME_LENGTH):
        self._path = path
        self._max_name_length = max_name_length
        self._config: IndexerConfig | None = None
        self._lock = threading.Lock()
        self.invalidations = 0

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> IndexerConfig:
        with self._lock:
            if self._config is None:
                self._config = load_indexer_config(
                    self._path, max_name_length=self._max_name_length
                )
            return self._config

    def project_name(self) -> str:
        return self.get().project_name

    def invalidate(self) -> None:
        with self._lock:
            self._config = None
            self.invalidations += 1

    @property
    def is_loaded(self) -> bool:
        return self._config is not None
