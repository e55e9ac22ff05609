"""Tests for compute_ops.context module."""

import pytest

from compute_ops.context import StrictContextVar


class TestStrictContextVar:
    """Tests for StrictContextVar class."""

    def test_get_raises_when_not_set(self) -> None:
        var: StrictContextVar[str] = StrictContextVar("test_var")

        with pytest.raises(LookupError) as exc_info:
            var.get()

        assert "test_var" in str(exc_info.value)

    def test_get_returns_value_after_set(self) -> None:
        var: StrictContextVar[str] = StrictContextVar("test_var")

        var.set("hello")

        assert var.get() == "hello"

    def test_set_overwrites_previous_value(self) -> None:
        var: StrictContextVar[int] = StrictContextVar("test_var")

        var.set(1)
        var.set(2)

        assert var.get() == 2
