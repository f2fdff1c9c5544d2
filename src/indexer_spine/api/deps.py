"""
FastAPI dependency injection.

Usage in routers::

    from indexer_spine.api.deps import Runtime

    @router.post("/contracts")
    async def register(runtime: Runtime):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from indexer_spine.api.runtime import IndexerRuntime


def get_runtime(request: Request) -> IndexerRuntime:
    """The runtime built during startup."""
    return request.app.state.runtime


Runtime = Annotated[IndexerRuntime, Depends(get_runtime)]
