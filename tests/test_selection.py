"""Tests for the --from/--to window."""

from __future__ import annotations

import pytest

from yap.modules.errors import InvalidRangeError, PackageNotFoundError, RangeError
from yap.modules.selection import check_range, filter_range

from conftest import make_descriptor

DESCRIPTORS = [make_descriptor(n) for n in ("A", "B", "C", "D", "E")]


def _names(descriptors):
    return [d.name for d in descriptors]


def test_window_is_inclusive() -> None:
    assert _names(filter_range(DESCRIPTORS, "B", "D")) == ["B", "C", "D"]


def test_open_ended_windows() -> None:
    assert _names(filter_range(DESCRIPTORS, "D", None)) == ["D", "E"]
    assert _names(filter_range(DESCRIPTORS, None, "B")) == ["A", "B"]
    assert _names(filter_range(DESCRIPTORS)) == ["A", "B", "C", "D", "E"]


def test_single_package_window() -> None:
    assert _names(filter_range(DESCRIPTORS, "C", "C")) == ["C"]


def test_unknown_name_fails() -> None:
    with pytest.raises(PackageNotFoundError) as excinfo:
        check_range(DESCRIPTORS, "X", None)
    assert excinfo.value.package == "X"
    assert excinfo.value.exit_code == 2

    with pytest.raises(PackageNotFoundError):
        filter_range(DESCRIPTORS, "A", "Z")


def test_reversed_window_fails() -> None:
    with pytest.raises(InvalidRangeError) as excinfo:
        check_range(DESCRIPTORS, "D", "B")
    assert isinstance(excinfo.value, RangeError)
    assert "invalid package order" in str(excinfo.value)


def test_window_never_reorders() -> None:
    shuffled = [make_descriptor(n) for n in ("E", "A", "D", "B")]
    assert _names(filter_range(shuffled, "A", "B")) == ["A", "D", "B"]
