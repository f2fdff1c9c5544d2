"""
FastAPI application factory.

``create_app()`` wires middleware, routers, error handlers and the lifespan
into a single ``FastAPI`` instance. It is the composition root: nothing
else in the package touches ``FastAPI`` directly.

Run with uvicorn's factory mode::

    uvicorn --factory indexer_spine.api.app:create_app --port 3000
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from indexer_spine.api.health import create_health_router
from indexer_spine.api.middleware.errors import unhandled_exception_handler
from indexer_spine.api.middleware.request_id import RequestIDMiddleware
from indexer_spine.api.runtime import IndexerRuntime
from indexer_spine.core.errors import is_fatal_at_startup
from indexer_spine.core.logging import configure_logging, get_logger
from indexer_spine.core.settings import IndexerSettings, get_settings

log = get_logger("indexer_spine.api")

BANNER = "indexer-spine control plane is running."


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks.

    A runtime placed on ``app.state`` before startup is used as is and left
    open on shutdown; its owner closes it.
    """
    settings: IndexerSettings = app.state.settings
    owns_runtime = app.state.runtime is None

    if owns_runtime:
        configure_logging(
            level=settings.log_level,
            json_format=settings.log_format == "json",
        )
        log.info("indexer_spine_starting", version=app.version, port=settings.server_port)
        try:
            app.state.runtime = await IndexerRuntime.bootstrap(settings)
        except Exception as e:
            if is_fatal_at_startup(e):
                log.critical("startup_failed", **e.to_dict())
            raise

    yield

    if owns_runtime:
        log.info("indexer_spine_shutting_down")
        await app.state.runtime.close()
        app.state.runtime = None


def create_app(
    *,
    settings: IndexerSettings | None = None,
    runtime: IndexerRuntime | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : IndexerSettings | None
        Override settings. Defaults to the runtime's settings, then to the
        cached :func:`get_settings` singleton (read from the environment).
    runtime : IndexerRuntime | None
        Prebuilt runtime (tests). Skips configuration validation, database
        bootstrap and the indexer process start.
    """
    if settings is None:
        settings = runtime.settings if runtime is not None else get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.runtime = runtime

    # ── Middleware (outermost → innermost) ────────────────────────────
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    from indexer_spine.api.routers import contracts

    def _checks():
        current = app.state.runtime
        return current.health_checks() if current is not None else []

    app.include_router(
        create_health_router("indexer-spine", version=settings.api_version, checks=_checks),
        tags=["health"],
    )
    app.include_router(contracts.router, tags=["contracts"])

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def root() -> str:
        return BANNER

    return app
