"""
Error handling — unhandled exceptions become the batch-response shape.

Clients of ``POST /contracts`` always get
``{"success": false, "results": [], "error": "..."}`` instead of a traceback.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from indexer_spine.core.errors import IndexerSpineError, categorize_error
from indexer_spine.core.logging import get_logger
from indexer_spine.registry.models import BatchRegistrationResponse

log = get_logger(__name__)

GENERIC_ERROR = "Internal server error"


def error_response(*, status: int, error: str) -> JSONResponse:
    body = BatchRegistrationResponse(success=False, results=[], error=error)
    return JSONResponse(status_code=status, content=body.model_dump())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — returns 500."""
    log.exception(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        category=categorize_error(exc).value,
    )
    message = exc.message if isinstance(exc, IndexerSpineError) else GENERIC_ERROR
    return error_response(status=500, error=message)
