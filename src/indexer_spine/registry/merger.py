"""
Configuration merger — the only writer of ``rindexer.yaml``.

``merge()`` is a full read-modify-write of the document:

1. read the current document (``contracts`` absent or null → empty list),
2. key existing contract entries by ``name`` (the internal id),
3. overlay the batch: an existing entry is replaced in place, a new one is
   appended,
4. write the whole document to a temporary file in the same directory and
   ``os.replace`` it over the original,
5. invalidate the project-config cache.

The document has no concurrency control of its own, so every merge runs
under one ``asyncio.Lock``; two batches merging at the same time are applied
one after the other and neither overwrites the other's entries.

Failures at any step raise ``StorageError`` and leave the previous document
in place.
"""

from __future__ import annotations

import asyncio
import os
import sys
import tempfile
from pathlib import Path
from typing import Any

import yaml

from indexer_spine.core.config import ProjectConfigCache, read_document
from indexer_spine.core.errors import ConfigurationError, StorageError
from indexer_spine.core.logging import get_logger
from indexer_spine.registry.models import ContractEntry

log = get_logger(__name__)


def merge_contracts(
    existing: list[dict[str, Any]],
    new_entries: list[ContractEntry],
) -> list[dict[str, Any]]:
    """Overlay ``new_entries`` onto ``existing`` by ``name``; pure function.

    Existing order is kept; replaced entries stay in their position and
    unseen names are appended in batch order. Should ``existing`` already
    hold duplicates, the last one wins and the name appears once.
    """
    merged: dict[str, dict[str, Any]] = {}
    for contract in existing:
        if isinstance(contract, dict) and "name" in contract:
            merged[contract["name"]] = contract
    for entry in new_entries:
        merged[entry.name] = entry.to_dict()
    return list(merged.values())


def dump_document(document: dict[str, Any]) -> str:
    return yaml.safe_dump(
        document,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        indent=2,
        width=sys.maxsize,
    )


class ConfigurationMerger:
    """Serialized read-modify-write of the configuration document."""

    def __init__(self, config_path: Path, cache: ProjectConfigCache | None = None):
        self._path = config_path
        self._cache = cache
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def read_entries(self) -> list[dict[str, Any]]:
        """Current ``contracts`` list of the document."""
        try:
            document = read_document(self._path)
        except ConfigurationError as e:
            raise StorageError(e.message, cause=e).with_context(path=str(self._path)) from e
        return list(document.get("contracts") or [])

    async def merge(self, new_entries: list[ContractEntry]) -> None:
        async with self._lock:
            try:
                document = read_document(self._path)
            except ConfigurationError as e:
                raise StorageError(e.message, cause=e).with_context(path=str(self._path)) from e

            existing = document.get("contracts") or []
            if not isinstance(existing, list):
                raise StorageError("'contracts' in rindexer.yaml is not a list").with_context(
                    path=str(self._path)
                )

            document["contracts"] = merge_contracts(existing, new_entries)
            self._write(document)

            if self._cache is not None:
                self._cache.invalidate()

        log.info(
            "configuration_merged",
            path=str(self._path),
            merged=len(new_entries),
            total=len(document["contracts"]),
        )

    def _write(self, document: dict[str, Any]) -> None:
        content = dump_document(document)
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                delete=False,
                dir=str(self._path.parent),
                prefix=f".{self._path.name}.",
                suffix=".tmp",
            ) as tmp:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_path = Path(tmp.name)
            if self._path.exists():
                # NamedTemporaryFile is created 0600; keep the document's mode
                os.chmod(tmp_path, self._path.stat().st_mode & 0o777)
            os.replace(tmp_path, self._path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise StorageError(f"Could not write rindexer.yaml: {e}", cause=e).with_context(
                path=str(self._path)
            ) from e
