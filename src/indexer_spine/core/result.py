"""
Result type for explicit success/failure handling.

``Result[T]`` is either ``Ok(value)`` or ``Err(error)``. The batch
coordinator uses it to carry each registration item's outcome through the
pipeline without letting one item's exception abort the rest of the batch.

Examples:
    >>> values, errors = partition_results([Ok(1), Err(ValueError("a")), Ok(2)])
    >>> values
    [1, 2]

Pattern matching works as well::

    match result:
        case Ok(processed):
            commit(processed)
        case Err(error):
            report(error)
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """Failed result containing an error."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


async def try_result_async(f: Callable[[], Awaitable[T]]) -> Result[T]:
    """Await ``f()`` and wrap the outcome in a Result."""
    try:
        return Ok(await f())
    except Exception as e:
        return Err(e)


def partition_results(results: list[Result[T]]) -> tuple[list[T], list[Exception]]:
    """Split results into (values, errors), preserving order within each."""
    values: list[T] = []
    errors: list[Exception] = []
    for result in results:
        if isinstance(result, Ok):
            values.append(result.value)
        else:
            errors.append(result.error)
    return values, errors


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result_async",
    "partition_results",
]
