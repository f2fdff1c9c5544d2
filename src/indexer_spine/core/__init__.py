"""indexer-spine core primitives.

Architecture::

    errors.py      Structured error hierarchy (IndexerSpineError and kinds)
    result.py      Result[T] envelope (Ok / Err / try_result_async)
    logging.py     structlog configuration and context helpers
    settings.py    Environment settings (pydantic-settings)
    config.py      rindexer.yaml loading, validation and cache
    naming.py      Composite keys, ABI filenames, Postgres schema names
    database.py    psycopg async connection pool
"""
