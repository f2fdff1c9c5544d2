"""Health endpoints for the control plane.

Three K8s-style endpoints:

- ``GET /health``        runs every check; 503 if a required one fails.
- ``GET /health/ready``  readiness probe; 503 unless everything is healthy.
- ``GET /health/live``   liveness probe; always 200.

Checks are declared with :class:`HealthCheck` and bound at startup::

    router = create_health_router(
        service_name="indexer-spine",
        version="0.1.0",
        checks=[
            HealthCheck("postgres", partial(check_database, pool)),
            HealthCheck("indexer", partial(check_indexer, supervisor), required=False),
        ],
    )
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from indexer_spine.core.errors import ProcessError
from indexer_spine.supervisor.process import ProcessSupervisor

_START_TIME = time.monotonic()

Status = Literal["healthy", "degraded", "unhealthy"]


class CheckResult(BaseModel):
    """Result of a single dependency health check."""

    status: Status
    latency_ms: float | None = None
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: Status = "healthy"
    service: str = ""
    version: str = ""
    uptime_s: float = Field(default_factory=lambda: round(time.monotonic() - _START_TIME, 1))
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    checks: dict[str, CheckResult] = Field(default_factory=dict)


class LivenessResponse(BaseModel):
    status: str = "alive"


@dataclass
class HealthCheck:
    """One dependency check.

    ``check_fn`` returns details (or ``True``) on success and raises on
    failure. A failing ``required`` check makes the service ``unhealthy``;
    an optional one only ``degraded``.
    """

    name: str
    check_fn: Callable[[], Awaitable[Any]]
    required: bool = True
    timeout_s: float = 5.0


async def check_indexer(supervisor: ProcessSupervisor) -> dict[str, Any]:
    """The indexer process is held and has not exited."""
    status = supervisor.status()
    if not supervisor.is_running:
        raise ProcessError(f"indexer process is {status['state']}")
    return status


async def _run_checks(checks: list[HealthCheck]) -> dict[str, CheckResult]:
    async def _one(hc: HealthCheck) -> tuple[str, CheckResult]:
        start = time.monotonic()
        try:
            outcome = await asyncio.wait_for(hc.check_fn(), timeout=hc.timeout_s)
        except TimeoutError:
            return hc.name, CheckResult(status="unhealthy", error="timeout")
        except Exception as exc:  # noqa: BLE001
            elapsed = (time.monotonic() - start) * 1000
            return hc.name, CheckResult(
                status="unhealthy",
                latency_ms=round(elapsed, 2),
                error=str(exc)[:200],
            )
        elapsed = (time.monotonic() - start) * 1000
        details = outcome if isinstance(outcome, dict) else {}
        return hc.name, CheckResult(
            status="healthy", latency_ms=round(elapsed, 2), details=details
        )

    pairs = await asyncio.gather(*[_one(hc) for hc in checks])
    return dict(pairs)


def _compute_status(check_results: dict[str, CheckResult], checks: list[HealthCheck]) -> Status:
    required = {hc.name for hc in checks if hc.required}
    down = [name for name, result in check_results.items() if result.status != "healthy"]
    if any(name in required for name in down):
        return "unhealthy"
    if down:
        return "degraded"
    return "healthy"


def create_health_router(
    service_name: str,
    version: str,
    checks: Callable[[], list[HealthCheck]] | list[HealthCheck] | None = None,
    prefix: str = "/health",
) -> APIRouter:
    """Router with ``/health``, ``/health/ready`` and ``/health/live``.

    ``checks`` may be a callable so the list is resolved per request; the
    runtime that owns the pool and supervisor only exists after startup.
    """
    router = APIRouter(tags=["health"])

    def _checks() -> list[HealthCheck]:
        if callable(checks):
            return checks()
        return checks or []

    async def _evaluate() -> HealthResponse:
        active = _checks()
        check_results = await _run_checks(active)
        return HealthResponse(
            status=_compute_status(check_results, active),
            service=service_name,
            version=version,
            checks=check_results,
        )

    @router.get(prefix, response_model=HealthResponse)
    async def health() -> JSONResponse:
        body = await _evaluate()
        code = 503 if body.status == "unhealthy" else 200
        return JSONResponse(content=body.model_dump(), status_code=code)

    @router.get(f"{prefix}/ready", response_model=HealthResponse)
    async def readiness() -> JSONResponse:
        body = await _evaluate()
        code = 503 if body.status != "healthy" else 200
        return JSONResponse(content=body.model_dump(), status_code=code)

    @router.get(f"{prefix}/live", response_model=LivenessResponse)
    async def liveness() -> LivenessResponse:
        return LivenessResponse()

    return router
