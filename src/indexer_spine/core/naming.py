"""Naming rules shared by the registry and the indexer.

All identifiers derived from a registration are produced here so the rules
can be tested in isolation:

* composite key     ``{name}_{report_id}``           (mapping table key)
* ABI filename      ``{internal_id}.abi.json``       (artifact file)
* schema name       ``{snake(project)}_{snake(id)}`` (indexer's Postgres schema)

Case normalization follows the indexer: an underscore is inserted before
every uppercase ASCII letter, the result is lowercased, and a single leading
underscore produced by a leading capital is dropped. ``"MyProject"`` becomes
``"my_project"``; ``"ERC20"`` becomes ``"e_r_c20"``.
"""

from __future__ import annotations

import re

_UPPER_RE = re.compile(r"([A-Z])")

ABI_FILE_SUFFIX = ".abi.json"


def composite_key(name: str, report_id: str) -> str:
    return f"{name}_{report_id}"


def abi_filename(internal_id: str) -> str:
    return f"{internal_id}{ABI_FILE_SUFFIX}"


def to_snake_case(value: str) -> str:
    snake = _UPPER_RE.sub(r"_\1", value).lower()
    if snake.startswith("_") and value[:1].isupper():
        snake = snake[1:]
    return snake


def schema_name(project_name: str, internal_id: str) -> str:
    """Postgres schema the indexer writes a contract's events into."""
    return f"{to_snake_case(project_name)}_{to_snake_case(internal_id)}"
