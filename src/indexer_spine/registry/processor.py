"""Registration processor — one validated item to commit-ready records."""

from __future__ import annotations

import json
import os
from pathlib import Path

from indexer_spine.core.logging import get_logger
from indexer_spine.core.naming import abi_filename
from indexer_spine.registry.mapping import MappingStore
from indexer_spine.registry.models import (
    AbiArtifact,
    ContractEntry,
    ContractRegistration,
    NetworkDetails,
    ProcessedContract,
)
from indexer_spine.registry.validation import parse_abi

log = get_logger(__name__)


def artifact_reference(config_path: Path, abis_dir: Path, filename: str) -> str:
    """ABI path as written into the document, relative to the document's directory.

    >>> artifact_reference(Path("/workspace/rindexer.yaml"), Path("/workspace/abis"), "x.abi.json")
    './abis/x.abi.json'
    """
    relative = os.path.relpath(abis_dir / filename, config_path.parent)
    posix = Path(relative).as_posix()
    if posix.startswith("../"):
        return posix
    return f"./{posix}"


class RegistrationProcessor:
    """Resolves an internal id and builds the entry and artifact for one item.

    The only side effect is the mapping store's read-or-create; document and
    file writes happen once per batch in the merger and artifact writer.
    """

    def __init__(self, store: MappingStore, *, config_path: Path, abis_dir: Path):
        self._store = store
        self._config_path = config_path
        self._abis_dir = abis_dir

    async def process(self, request: ContractRegistration) -> ProcessedContract:
        abi = parse_abi(request.abi)
        key = request.composite_key

        mapping = await self._store.resolve_or_create(key)
        internal_id = mapping.internal_id
        filename = abi_filename(internal_id)

        entry = ContractEntry(
            name=internal_id,
            details=[
                NetworkDetails(
                    network=request.network,
                    address=request.address,
                    start_block=str(int(request.start_block)),
                )
            ],
            abi=artifact_reference(self._config_path, self._abis_dir, filename),
        )
        artifact = AbiArtifact(filename=filename, content=json.dumps(abi, indent=2))

        log.info(
            "contract_processed",
            contract=key,
            internal_id=internal_id,
            action="added" if mapping.created else "replaced",
        )
        return ProcessedContract(
            composite_key=key,
            internal_id=internal_id,
            entry=entry,
            artifact=artifact,
            is_new=mapping.created,
        )
