"""
Registry data model.

Two families of types live here:

- **Dataclasses** for the internal pipeline (``ContractRegistration`` →
  ``ProcessedContract`` → ``ContractEntry`` + ``AbiArtifact``). These are
  built by the validator/processor and consumed by the merger and writer.
- **Pydantic models** for the HTTP contract (``ContractResult``,
  ``BatchRegistrationResponse``).

``ContractRegistration.from_payload`` is tolerant: it never
raises, so a malformed item becomes a per-item validation failure instead of
a request-level 422 that would hide the other items' outcomes.

Configuration entry shape inside ``rindexer.yaml``::

    contracts:
      - name: abcdefghij            # internal id
        details:
          - network: ethereum
            address: "0x..."
            start_block: "0"
        abi: ./abis/abcdefghij.abi.json
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

from indexer_spine.core.naming import composite_key


@dataclass(frozen=True)
class ContractRegistration:
    """One item of a batch registration request, as received."""

    name: Any = None
    report_id: Any = None
    network: Any = None
    address: Any = None
    start_block: Any = None
    abi: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> ContractRegistration:
        if not isinstance(payload, dict):
            return cls()
        return cls(
            name=payload.get("name"),
            report_id=payload.get("report_id"),
            network=payload.get("network"),
            address=payload.get("address"),
            start_block=payload.get("start_block"),
            abi=payload.get("abi"),
        )

    @property
    def composite_key(self) -> str:
        return composite_key(str(self.name), str(self.report_id))


@dataclass(frozen=True)
class NetworkDetails:
    network: str
    address: str
    start_block: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "network": self.network,
            "address": self.address,
            "start_block": self.start_block,
        }


@dataclass(frozen=True)
class ContractEntry:
    """A contract entry of the configuration document, keyed by ``name``."""

    name: str
    details: list[NetworkDetails]
    abi: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "details": [d.to_dict() for d in self.details],
            "abi": self.abi,
        }


@dataclass(frozen=True)
class AbiArtifact:
    """ABI file content destined for ``abis_dir / filename``."""

    filename: str
    content: str


@dataclass(frozen=True)
class ProcessedContract:
    """A registration resolved to its internal id, ready to commit."""

    composite_key: str
    internal_id: str
    entry: ContractEntry
    artifact: AbiArtifact
    is_new: bool = True

    @property
    def action(self) -> str:
        return "added" if self.is_new else "replaced"


@dataclass
class PreparedBatch:
    """Deduplicated entries and artifacts of one batch."""

    entries: list[ContractEntry] = field(default_factory=list)
    artifacts: list[AbiArtifact] = field(default_factory=list)


# ── HTTP models ──────────────────────────────────────────────────────────


class ContractResult(BaseModel):
    """Outcome of one item of a batch."""

    contract: str = Field(description="Composite key (name_reportid)")
    success: bool
    message: str | None = None
    error: str | None = None


class BatchRegistrationResponse(BaseModel):
    """Response of ``POST /contracts``."""

    success: bool
    results: list[ContractResult] = Field(default_factory=list)
    error: str | None = None


class ContractLookupResponse(BaseModel):
    """Response of ``GET /contracts/{name}/{report_id}``."""

    contract: str
    internal_id: str
    schema_name: str
    entry: dict[str, Any] | None = None
