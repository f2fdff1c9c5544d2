"""
Runtime container — the long-lived objects shared by every request.

Startup order (:meth:`IndexerRuntime.bootstrap`)::

    load_indexer_config        ConfigurationError       → fatal
    open_pool + SELECT 1       DatabaseConnectionError  → fatal
    ensure_schema              DatabaseError            → fatal
    wire merger / writer / processor / coordinator
    supervisor.start()         ProcessSpawnError        → logged, service stays up

Shutdown stops the indexer process, then closes the pool.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from psycopg_pool import AsyncConnectionPool

from indexer_spine.api.health import HealthCheck, check_indexer
from indexer_spine.core.config import ProjectConfigCache, load_indexer_config
from indexer_spine.core.database import check_database, close_pool, create_pool, open_pool
from indexer_spine.core.errors import ProcessError
from indexer_spine.core.logging import get_logger
from indexer_spine.core.settings import IndexerSettings
from indexer_spine.registry.artifacts import ArtifactWriter
from indexer_spine.registry.coordinator import BatchCoordinator
from indexer_spine.registry.mapping import MappingStore, PostgresMappingStore
from indexer_spine.registry.merger import ConfigurationMerger
from indexer_spine.registry.processor import RegistrationProcessor
from indexer_spine.supervisor.process import ProcessSupervisor

log = get_logger(__name__)


@dataclass
class IndexerRuntime:
    settings: IndexerSettings
    store: MappingStore
    cache: ProjectConfigCache
    merger: ConfigurationMerger
    writer: ArtifactWriter
    coordinator: BatchCoordinator
    supervisor: ProcessSupervisor | None = None
    pool: AsyncConnectionPool | None = None

    @classmethod
    def build(
        cls,
        settings: IndexerSettings,
        store: MappingStore,
        *,
        supervisor: ProcessSupervisor | None = None,
        pool: AsyncConnectionPool | None = None,
    ) -> IndexerRuntime:
        """Wire the registry pipeline around an existing store."""
        cache = ProjectConfigCache(
            settings.config_path, max_name_length=settings.project_name_max_length
        )
        merger = ConfigurationMerger(settings.config_path, cache)
        writer = ArtifactWriter(settings.abis_dir)
        processor = RegistrationProcessor(
            store, config_path=settings.config_path, abis_dir=settings.abis_dir
        )
        coordinator = BatchCoordinator(
            processor,
            merger,
            writer,
            supervisor,
            max_contracts=settings.max_contracts_per_request,
        )
        return cls(
            settings=settings,
            store=store,
            cache=cache,
            merger=merger,
            writer=writer,
            coordinator=coordinator,
            supervisor=supervisor,
            pool=pool,
        )

    @classmethod
    async def bootstrap(cls, settings: IndexerSettings) -> IndexerRuntime:
        """Validate, connect and start the indexer. Raises on fatal errors."""
        config = load_indexer_config(
            settings.config_path, max_name_length=settings.project_name_max_length
        )
        log.info(
            "configuration_loaded",
            project=config.project_name,
            contracts=len(config.contracts),
            path=str(settings.config_path),
        )

        pool = create_pool(settings)
        await open_pool(pool)
        try:
            store = PostgresMappingStore(pool)
            await store.ensure_schema()
        except Exception:
            await close_pool(pool)
            raise

        supervisor = ProcessSupervisor(
            settings.indexer_command,
            cwd=settings.workspace_dir,
            termination_timeout=settings.termination_timeout_seconds,
            settle_delay=settings.restart_settle_seconds,
        )
        runtime = cls.build(settings, store, supervisor=supervisor, pool=pool)

        try:
            await supervisor.start()
        except ProcessError as e:
            log.error("indexer_start_failed", **e.to_dict())

        return runtime

    async def close(self) -> None:
        if self.supervisor is not None:
            await self.supervisor.shutdown()
        await close_pool(self.pool)
        log.info("runtime_closed")

    def health_checks(self) -> list[HealthCheck]:
        checks: list[HealthCheck] = []
        if self.pool is not None:
            checks.append(HealthCheck("postgres", partial(check_database, self.pool)))
        if self.supervisor is not None:
            checks.append(
                HealthCheck("indexer", partial(check_indexer, self.supervisor), required=False)
            )
        return checks
