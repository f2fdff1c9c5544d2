"""Artifact writer — persists ABI files, one per internal id."""

from __future__ import annotations

from pathlib import Path

from indexer_spine.core.errors import StorageError
from indexer_spine.core.logging import get_logger
from indexer_spine.registry.models import AbiArtifact

log = get_logger(__name__)


class ArtifactWriter:
    """Writes ``AbiArtifact`` records into ``abis_dir``.

    Writes are independent: a failure raises ``StorageError`` for that file
    and files already written stay on disk. Re-registering the same contract
    rewrites the same path, so a retry heals a partial batch.
    """

    def __init__(self, abis_dir: Path):
        self._abis_dir = abis_dir

    @property
    def abis_dir(self) -> Path:
        return self._abis_dir

    def path_for(self, filename: str) -> Path:
        return self._abis_dir / filename

    def write_all(self, artifacts: list[AbiArtifact]) -> None:
        try:
            self._abis_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Could not create ABI directory: {e}", cause=e).with_context(
                path=str(self._abis_dir)
            ) from e

        for artifact in artifacts:
            path = self.path_for(artifact.filename)
            try:
                path.write_text(artifact.content, encoding="utf-8")
            except OSError as e:
                raise StorageError(
                    f"Could not write ABI file {artifact.filename}: {e}", cause=e
                ).with_context(path=str(path)) from e
            log.debug("abi_written", path=str(path))

        log.info("abis_written", count=len(artifacts), directory=str(self._abis_dir))
