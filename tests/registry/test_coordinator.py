"""Tests for indexer_spine.registry.coordinator — end-to-end batch behaviour."""

from __future__ import annotations

import json

import pytest

from conftest import make_address, make_contract, read_yaml
from indexer_spine.core.config import ProjectConfigCache
from indexer_spine.core.errors import DatabaseError, ProcessSpawnError
from indexer_spine.registry.artifacts import ArtifactWriter
from indexer_spine.registry.coordinator import (
    NOTHING_PROCESSED,
    BatchCoordinator,
    prepare_contract_batch,
)
from indexer_spine.registry.mapping import InMemoryMappingStore
from indexer_spine.registry.merger import ConfigurationMerger
from indexer_spine.registry.models import AbiArtifact, ContractEntry, ProcessedContract
from indexer_spine.registry.processor import RegistrationProcessor


class FakeSupervisor:
    def __init__(self, error: Exception | None = None):
        self.restarts = 0
        self.error = error

    async def restart(self) -> None:
        self.restarts += 1
        if self.error is not None:
            raise self.error


class FailingStore(InMemoryMappingStore):
    """In-memory store that fails for keys starting with ``prefix``."""

    def __init__(self, prefix: str = ""):
        super().__init__()
        self.prefix = prefix
        self.calls: list[str] = []

    async def resolve_or_create(self, composite_key):
        self.calls.append(composite_key)
        if composite_key.startswith(self.prefix):
            raise DatabaseError("Mapping store unavailable: connection refused")
        return await super().resolve_or_create(composite_key)


@pytest.fixture()
def store():
    return InMemoryMappingStore()


@pytest.fixture()
def supervisor():
    return FakeSupervisor()


def build(config_path, abis_dir, store, supervisor, max_contracts=50):
    cache = ProjectConfigCache(config_path)
    processor = RegistrationProcessor(store, config_path=config_path, abis_dir=abis_dir)
    return BatchCoordinator(
        processor,
        ConfigurationMerger(config_path, cache),
        ArtifactWriter(abis_dir),
        supervisor,
        max_contracts=max_contracts,
    )


@pytest.fixture()
def coordinator(config_path, abis_dir, store, supervisor):
    return build(config_path, abis_dir, store, supervisor)


def contracts_in(config_path):
    return read_yaml(config_path).get("contracts") or []


class TestPrepareContractBatch:
    def test_last_write_wins_in_first_seen_order(self):
        def processed(internal_id, network):
            entry = ContractEntry(name=internal_id, details=[], abi=network)
            artifact = AbiArtifact(f"{internal_id}.abi.json", network)
            return ProcessedContract(f"{internal_id}_key", internal_id, entry, artifact)

        batch = prepare_contract_batch(
            [processed("a", "v1"), processed("b", "v1"), processed("a", "v2")]
        )
        assert [e.name for e in batch.entries] == ["a", "b"]
        assert batch.entries[0].abi == "v2"
        assert [a.content for a in batch.artifacts] == ["v2", "v1"]


class TestRegisterBatch:
    @pytest.mark.asyncio
    async def test_insert_then_update(self, coordinator, config_path, abis_dir, store, supervisor):
        first = await coordinator.register_batch({"contracts": [make_contract()]})

        assert first.success is True
        assert first.results[0].contract == "Token_r1"
        assert first.results[0].message == 'Contract "Token_r1" added successfully'
        internal_id = await store.lookup("Token_r1")
        assert [c["name"] for c in contracts_in(config_path)] == [internal_id]
        assert (abis_dir / f"{internal_id}.abi.json").exists()
        assert supervisor.restarts == 1

        second = await coordinator.register_batch(
            {"contracts": [make_contract(network="polygon", start_block=99)]}
        )

        assert second.success is True
        assert second.results[0].message == 'Contract "Token_r1" replaced successfully'
        entries = contracts_in(config_path)
        assert len(entries) == 1
        assert entries[0]["name"] == internal_id
        assert entries[0]["details"] == [
            {"network": "polygon", "address": make_address(1), "start_block": "99"}
        ]
        assert supervisor.restarts == 2

    @pytest.mark.asyncio
    async def test_mixed_validity(self, coordinator, config_path, supervisor):
        response = await coordinator.register_batch(
            {
                "contracts": [
                    make_contract("A"),
                    make_contract("B", address="0x123"),
                    make_contract("C"),
                ]
            }
        )

        assert response.success is True
        assert [r.contract for r in response.results] == ["A_r1", "B_r1", "C_r1"]
        assert [r.success for r in response.results] == [True, False, True]
        assert response.results[1].error == "Invalid Ethereum address format"
        assert len(contracts_in(config_path)) == 2
        assert supervisor.restarts == 1

    @pytest.mark.asyncio
    async def test_oversized_batch_has_no_side_effects(
        self, coordinator, config_path, abis_dir, store, supervisor
    ):
        before = config_path.read_text()
        items = [make_contract(f"T{i}") for i in range(51)]

        response = await coordinator.register_batch({"contracts": items})

        assert response.success is False
        assert response.results == []
        assert response.error == "Maximum 50 contracts allowed per batch"
        assert config_path.read_text() == before
        assert list(abis_dir.iterdir()) == []
        assert len(store) == 0
        assert supervisor.restarts == 0

    @pytest.mark.asyncio
    async def test_rejected_body(self, coordinator):
        response = await coordinator.register_batch({"contract": []})
        assert response.success is False
        assert response.error == "Missing or invalid 'contracts' array"

    @pytest.mark.asyncio
    async def test_nothing_succeeds(self, coordinator, config_path, supervisor):
        before = config_path.read_text()
        response = await coordinator.register_batch(
            {"contracts": [make_contract(abi="nope"), {"name": "x"}]}
        )

        assert response.success is False
        assert response.error == NOTHING_PROCESSED
        assert len(response.results) == 2
        assert response.results[0].error == "Invalid ABI format - must be valid JSON"
        assert response.results[1].error.startswith("Missing required fields: report_id")
        assert config_path.read_text() == before
        assert supervisor.restarts == 0

    @pytest.mark.asyncio
    async def test_duplicate_keys_in_one_batch(self, coordinator, config_path):
        response = await coordinator.register_batch(
            {
                "contracts": [
                    make_contract(network="ethereum"),
                    make_contract("Other"),
                    make_contract(network="polygon"),
                ]
            }
        )

        assert len(response.results) == 3
        assert all(r.success for r in response.results)
        entries = contracts_in(config_path)
        assert len(entries) == 2
        assert entries[0]["details"][0]["network"] == "polygon"

    @pytest.mark.asyncio
    async def test_abi_file_content(self, coordinator, abis_dir, store):
        abi = [{"type": "event", "name": "Approval", "inputs": []}]
        await coordinator.register_batch({"contracts": [make_contract(abi=json.dumps(abi))]})
        internal_id = await store.lookup("Token_r1")
        assert json.loads((abis_dir / f"{internal_id}.abi.json").read_text()) == abi

    @pytest.mark.asyncio
    async def test_restart_failure_is_not_reported(self, config_path, abis_dir, store):
        supervisor = FakeSupervisor(ProcessSpawnError(["/app/rindexer"]))
        coordinator = build(config_path, abis_dir, store, supervisor)

        response = await coordinator.register_batch({"contracts": [make_contract()]})

        assert response.success is True
        assert response.error is None
        assert supervisor.restarts == 1

    @pytest.mark.asyncio
    async def test_storage_failure_is_batch_level(self, coordinator, config_path, supervisor):
        config_path.unlink()

        response = await coordinator.register_batch({"contracts": [make_contract()]})

        assert response.success is False
        assert response.error.startswith("Failed to update indexer configuration")
        assert len(response.results) == 1
        assert supervisor.restarts == 0

    @pytest.mark.asyncio
    async def test_mapping_failure_aborts_batch(self, config_path, abis_dir, supervisor):
        before = config_path.read_text()
        store = FailingStore(prefix="B")
        coordinator = build(config_path, abis_dir, store, supervisor)

        response = await coordinator.register_batch(
            {"contracts": [make_contract("A"), make_contract("B"), make_contract("C")]}
        )

        assert response.success is False
        assert response.error == (
            "Failed to resolve contract mappings: Mapping store unavailable: connection refused"
        )
        assert [r.contract for r in response.results] == ["A_r1", "B_r1"]
        assert [r.success for r in response.results] == [True, False]
        assert store.calls == ["A_r1", "B_r1"]
        assert config_path.read_text() == before
        assert list(abis_dir.iterdir()) == []
        assert supervisor.restarts == 0

    @pytest.mark.asyncio
    async def test_mapping_failure_on_only_item_is_not_a_client_error(
        self, config_path, abis_dir, supervisor
    ):
        coordinator = build(config_path, abis_dir, FailingStore(), supervisor)

        response = await coordinator.register_batch({"contracts": [make_contract("B")]})

        assert response.success is False
        assert response.error != NOTHING_PROCESSED
        assert response.error.startswith("Failed to resolve contract mappings")
        assert len(response.results) == 1
        assert "connection refused" in response.results[0].error
        assert supervisor.restarts == 0

    @pytest.mark.asyncio
    async def test_result_count_matches_items(self, coordinator):
        items = [make_contract(f"T{i}", address="bad" if i % 3 == 0 else make_address(i)) for i in range(12)]
        response = await coordinator.register_batch({"contracts": items})
        assert len(response.results) == len(items)

    @pytest.mark.asyncio
    async def test_without_supervisor(self, config_path, abis_dir, store):
        coordinator = build(config_path, abis_dir, store, None)
        response = await coordinator.register_batch({"contracts": [make_contract()]})
        assert response.success is True
