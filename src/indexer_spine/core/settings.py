"""Application settings.

All values come from environment variables (or a ``.env`` file) using the
deployment's existing variable names, e.g. ``POSTGRES_HOST`` and
``CORS_ORIGINS``. No prefix is applied.

``CORS_ORIGINS`` and ``INDEXER_COMMAND`` are JSON arrays::

    CORS_ORIGINS='["http://localhost:3000", "https://yourdomain.com"]'
    INDEXER_COMMAND='["/app/rindexer", "start", "all"]'
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

from psycopg.conninfo import make_conninfo
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from indexer_spine.core.errors import InvalidSettingError

CORS_ORIGINS_HELP = 'Example: ["*"] or ["http://localhost:3000"]'


class IndexerSettings(BaseSettings):
    """indexer-spine configuration.

    Order of precedence (highest → lowest):
        1. Environment variables (``POSTGRES_HOST``, ``CORS_ORIGINS``, ...)
        2. ``.env`` file
        3. Defaults below
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "rindexer"
    postgres_user: str = "postgres"
    postgres_password: str = "rindexer"
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5

    # ── HTTP ─────────────────────────────────────────────────────
    cors_origins: Annotated[list[str], NoDecode] = Field(
        description="Allowed CORS origins (JSON array, required)",
    )
    server_host: str = "0.0.0.0"
    server_port: int = 3000
    api_title: str = "indexer-spine"
    api_version: str = "0.1.0"

    # ── Workspace ────────────────────────────────────────────────
    config_path: Path = Path("/workspace/rindexer.yaml")
    abis_dir: Path = Path("/workspace/abis")
    project_name_max_length: int = 32

    # ── Indexer process ──────────────────────────────────────────
    indexer_command: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["/app/rindexer", "start", "all"],
    )
    termination_timeout_seconds: float = 5.0
    restart_settle_seconds: float = 1.0

    # ── Registration ─────────────────────────────────────────────
    max_contracts_per_request: int = 50

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "console"  # json or console

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError(f"CORS_ORIGINS must be a valid JSON array. {CORS_ORIGINS_HELP}") from exc
        if not isinstance(value, list):
            raise ValueError(f"CORS_ORIGINS must be a valid JSON array. {CORS_ORIGINS_HELP}")
        return value

    @field_validator("indexer_command", mode="before")
    @classmethod
    def _parse_indexer_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("INDEXER_COMMAND must be a JSON array of strings") from exc
        if not isinstance(value, list) or not value:
            raise ValueError("INDEXER_COMMAND must be a non-empty JSON array of strings")
        return value

    @property
    def database_conninfo(self) -> str:
        """libpq connection string for psycopg."""
        return make_conninfo(
            host=self.postgres_host,
            port=self.postgres_port,
            dbname=self.postgres_db,
            user=self.postgres_user,
            password=self.postgres_password,
        )

    @property
    def workspace_dir(self) -> Path:
        """Directory holding the configuration document; the indexer runs here."""
        return self.config_path.parent


def load_settings(**overrides: Any) -> IndexerSettings:
    """Build settings, turning validation failures into ``InvalidSettingError``."""
    try:
        return IndexerSettings(**overrides)
    except ValidationError as exc:
        first = exc.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ())) or "settings"
        if key == "cors_origins" and first.get("type") == "missing":
            message = (
                "CORS_ORIGINS environment variable is required. "
                f"Please set it to a JSON array. {CORS_ORIGINS_HELP}"
            )
        else:
            message = f"Invalid setting {key.upper()}: {first.get('msg')}"
        raise InvalidSettingError(key, message) from exc


@lru_cache(maxsize=1)
def get_settings() -> IndexerSettings:
    """Cached settings — loaded once per process."""
    return load_settings()
