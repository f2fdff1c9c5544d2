"""Stateless validation of batch requests and registration items.

Both validators return a human-readable failure reason, or ``None`` when the
input is acceptable. They never raise and never touch the network or disk.
"""

from __future__ import annotations

import json
import re
from typing import Any

from indexer_spine.core.errors import ValidationError
from indexer_spine.registry.models import ContractRegistration

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
START_BLOCK_RE = re.compile(r"[0-9]+")

REQUIRED_FIELDS = ("name", "report_id", "network", "address", "start_block", "abi")


def validate_batch_request(body: Any, max_contracts: int = 50) -> str | None:
    if not isinstance(body, dict):
        return "Missing or invalid 'contracts' array"
    contracts = body.get("contracts")
    if not isinstance(contracts, list):
        return "Missing or invalid 'contracts' array"
    if len(contracts) == 0:
        return "Contracts array cannot be empty"
    if len(contracts) > max_contracts:
        return f"Maximum {max_contracts} contracts allowed per batch"
    return None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def parse_abi(abi: Any) -> list[Any]:
    """Return the ABI as a parsed JSON array.

    Raises:
        ValidationError: malformed JSON or not an array
    """
    if isinstance(abi, str):
        try:
            abi = json.loads(abi)
        except json.JSONDecodeError as e:
            raise ValidationError(
                "Invalid ABI format - must be valid JSON", field="abi", cause=e
            ) from e
    if not isinstance(abi, list):
        raise ValidationError("Invalid ABI format - must be a JSON array", field="abi")
    return abi


def validate_contract(contract: ContractRegistration) -> str | None:
    """Check one item: required fields, then address, then ABI, then start block."""
    missing = [name for name in REQUIRED_FIELDS if _is_blank(getattr(contract, name))]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"

    for name in ("name", "report_id", "network", "address"):
        if not isinstance(getattr(contract, name), str):
            return f"Field '{name}' must be a string"

    if not ADDRESS_RE.fullmatch(contract.address):
        return "Invalid Ethereum address format"

    try:
        abi = parse_abi(contract.abi)
    except ValidationError as e:
        return e.message
    if not abi:
        return "Missing required fields: abi"

    start_block = contract.start_block
    if isinstance(start_block, bool) or not isinstance(start_block, (str, int)):
        return "Start block must be a non-negative integer"
    if not START_BLOCK_RE.fullmatch(str(start_block)):
        return "Start block must be a non-negative integer"

    return None
