"""
Shared pytest fixtures for indexer-spine tests.

This module provides:
- A temporary workspace holding a valid ``rindexer.yaml`` and ``abis/``
- Settings pointed at that workspace
- Registration payload builders
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import pytest
import yaml

from indexer_spine.core.settings import IndexerSettings

TRANSFER_ABI: list[dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    }
]

SLEEP_FOREVER = [sys.executable, "-c", "import time\nwhile True: time.sleep(1)"]


def make_address(n: int = 1) -> str:
    return "0x" + f"{n:040x}"


def make_contract(name: str = "Token", report_id: str = "r1", **overrides: Any) -> dict[str, Any]:
    """A valid registration item; ``overrides`` replace or add fields."""
    payload: dict[str, Any] = {
        "name": name,
        "report_id": report_id,
        "network": "ethereum",
        "address": make_address(1),
        "start_block": "0",
        "abi": json.dumps(TRANSFER_ABI),
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def rindexer_document() -> dict[str, Any]:
    return {
        "name": "catapulta",
        "project_type": "no-code",
        "networks": [
            {"name": "ethereum", "chain_id": 1, "rpc": "http://localhost:8545"},
        ],
        "storage": {"postgres": {"enabled": True}},
        "contracts": [],
    }


@pytest.fixture()
def workspace(tmp_path: Path, rindexer_document: dict[str, Any]) -> Path:
    """Directory with ``rindexer.yaml`` and an empty ``abis/``."""
    (tmp_path / "rindexer.yaml").write_text(
        yaml.safe_dump(rindexer_document, sort_keys=False), encoding="utf-8"
    )
    (tmp_path / "abis").mkdir()
    return tmp_path


@pytest.fixture()
def config_path(workspace: Path) -> Path:
    return workspace / "rindexer.yaml"


@pytest.fixture()
def abis_dir(workspace: Path) -> Path:
    return workspace / "abis"


@pytest.fixture()
def settings(workspace: Path) -> IndexerSettings:
    return IndexerSettings(
        _env_file=None,
        cors_origins=["*"],
        config_path=workspace / "rindexer.yaml",
        abis_dir=workspace / "abis",
        indexer_command=SLEEP_FOREVER,
        termination_timeout_seconds=0.5,
        restart_settle_seconds=0.05,
    )


def read_yaml(path: Path) -> dict[str, Any]:
    return yaml.safe_load(path.read_text(encoding="utf-8"))
