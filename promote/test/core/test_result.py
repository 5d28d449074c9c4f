"""Tests for promote.core.result module."""

import pytest

from promote.core.result import Err, Ok, Result, is_err, is_ok


class TestOk:
    def test_create_ok(self) -> None:
        result = Ok(42)
        assert result.value == 42
        assert result.is_ok() is True
        assert result.is_err() is False

    def test_unwrap(self) -> None:
        assert Ok("v1.2.0").unwrap() == "v1.2.0"

    def test_unwrap_or_ignores_default(self) -> None:
        assert Ok(42).unwrap_or(0) == 42

    def test_map(self) -> None:
        assert Ok(2).map(lambda v: v * 3) == Ok(6)

    def test_map_err_is_noop(self) -> None:
        result = Ok(1)
        assert result.map_err(str) is result

    def test_repr(self) -> None:
        assert repr(Ok("x")) == "Ok('x')"


class TestErr:
    def test_create_err(self) -> None:
        result = Err("boom")
        assert result.error == "boom"
        assert result.is_ok() is False
        assert result.is_err() is True

    def test_unwrap_raises(self) -> None:
        with pytest.raises(ValueError, match="called unwrap on Err"):
            Err("boom").unwrap()

    def test_unwrap_or_returns_default(self) -> None:
        assert Err("boom").unwrap_or(7) == 7

    def test_map_is_noop(self) -> None:
        result = Err("boom")
        assert result.map(lambda v: v) is result

    def test_map_err_converts_payload(self) -> None:
        assert Err("boom").map_err(len) == Err(4)


class TestTypeGuards:
    def test_is_ok_and_is_err(self) -> None:
        results: list[Result[int, str]] = [Ok(1), Err("x")]
        assert [is_ok(r) for r in results] == [True, False]
        assert [is_err(r) for r in results] == [False, True]

    def test_pattern_matching(self) -> None:
        result: Result[int, str] = Err("nope")
        match result:
            case Ok(value):
                pytest.fail(f"unexpected Ok({value})")
            case Err(error):
                assert error == "nope"
