"""Tests for indexer_spine.core.result."""

from __future__ import annotations

import pytest

from indexer_spine.core.errors import DatabaseError
from indexer_spine.core.result import Err, Ok, partition_results, try_result_async


class TestOkErr:
    def test_ok(self):
        result = Ok(3)
        assert result.is_ok() and not result.is_err()
        assert repr(result) == "Ok(3)"

    def test_err(self):
        result = Err(ValueError("bad"))
        assert result.is_err() and not result.is_ok()

    def test_pattern_matching(self):
        match Ok("value"):
            case Ok(v):
                assert v == "value"
            case Err(_):
                pytest.fail("expected Ok")

    def test_pattern_matching_on_error_type(self):
        match Err(DatabaseError("down")):
            case Err(DatabaseError() as error):
                assert error.message == "down"
            case _:
                pytest.fail("expected a DatabaseError")


class TestHelpers:
    @pytest.mark.asyncio
    async def test_try_result_async_ok(self):
        async def work():
            return 42

        assert await try_result_async(work) == Ok(42)

    @pytest.mark.asyncio
    async def test_try_result_async_err(self):
        async def work():
            raise RuntimeError("boom")

        result = await try_result_async(work)
        assert isinstance(result, Err)
        assert str(result.error) == "boom"

    def test_partition_results_keeps_order(self):
        values, errors = partition_results([Ok(1), Err(ValueError("a")), Ok(2), Err(ValueError("b"))])
        assert values == [1, 2]
        assert [str(e) for e in errors] == ["a", "b"]
