"""
Contracts router — batch registration and lookup.

POST /contracts
GET  /contracts/{name}/{report_id}

The POST body is read as raw JSON rather than a pydantic model so a
malformed item is reported on that item instead of failing the whole
request with a 422.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from indexer_spine.api.deps import Runtime
from indexer_spine.api.middleware.errors import error_response
from indexer_spine.core.naming import composite_key, schema_name
from indexer_spine.registry.coordinator import NOTHING_PROCESSED
from indexer_spine.registry.models import BatchRegistrationResponse, ContractLookupResponse

router = APIRouter(prefix="/contracts")


def status_for_response(response: BatchRegistrationResponse) -> int:
    """200 on success, 400 for a rejected or fully failed batch, 500 on a storage failure."""
    if response.success:
        return 200
    if not response.results or response.error == NOTHING_PROCESSED:
        return 400
    return 500


@router.post("", response_model=BatchRegistrationResponse)
async def register_contracts(request: Request, runtime: Runtime) -> JSONResponse:
    """Register or update a batch of contracts and restart the indexer."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return error_response(status=400, error="Request body must be valid JSON")

    response = await runtime.coordinator.register_batch(body)
    return JSONResponse(status_code=status_for_response(response), content=response.model_dump())


@router.get("/{name}/{report_id}", response_model=ContractLookupResponse)
async def get_contract(name: str, report_id: str, runtime: Runtime) -> ContractLookupResponse:
    """Resolve a registration to its internal id, schema and configuration entry."""
    key = composite_key(name, report_id)
    internal_id = await runtime.store.lookup(key)
    if internal_id is None:
        raise HTTPException(status_code=404, detail=f'Contract "{key}" is not registered')

    entry = next(
        (c for c in runtime.merger.read_entries() if isinstance(c, dict) and c.get("name") == internal_id),
        None,
    )
    return ContractLookupResponse(
        contract=key,
        internal_id=internal_id,
        schema_name=schema_name(runtime.cache.project_name(), internal_id),
        entry=entry,
    )
