"""Tests for descriptor helpers and architecture resolution."""

from __future__ import annotations

import pytest

from yap.modules import descriptor as descriptor_mod
from yap.modules.descriptor import PackageDescriptor, dependency_names, normalize_arch, split_dependency
from yap.modules.errors import RecipeError


@pytest.mark.parametrize("dep, expected", [
    ("lib", ("lib", "")),
    ("lib >= 1.0", ("lib", ">= 1.0")),
    ("lib>=1.0", ("lib", ">=1.0")),
    ("lib=2", ("lib", "=2")),
    ("  lib   <  3 ", ("lib", "< 3")),
    ("", ("", "")),
])
def test_split_dependency(dep, expected) -> None:
    assert split_dependency(dep) == expected


def test_dependency_names_are_distinct() -> None:
    assert dependency_names(["a>=1", "b", "a < 3", ""]) == ["a", "b"]


def test_arch_aliases() -> None:
    assert normalize_arch("amd64") == "x86_64"
    assert normalize_arch("ARM64") == "aarch64"
    assert normalize_arch("riscv64") == "riscv64"


def test_any_wins_over_host() -> None:
    desc = PackageDescriptor("a", "1", arch=["x86_64", "any"])
    assert desc.compute_architecture("aarch64") == "any"


def test_host_must_be_declared() -> None:
    desc = PackageDescriptor("a", "1", arch=["x86_64"])
    assert desc.compute_architecture("amd64") == "x86_64"
    with pytest.raises(RecipeError, match="unsupported architecture"):
        desc.compute_architecture("aarch64")


def test_layout_and_version() -> None:
    desc = PackageDescriptor("a", "1.2", release="3", epoch="2", start_dir="/b/a")
    assert desc.src_dir == "/b/a/src"
    assert desc.pkg_dir == "/b/a/pkg"
    assert desc.full_version == "2:1.2-3"


def test_cross_compilation_detection(monkeypatch) -> None:
    monkeypatch.setattr(descriptor_mod, "host_arch", lambda: "x86_64")
    desc = PackageDescriptor("a", "1")
    assert not desc.is_cross
    desc.target_arch = "amd64"
    assert not desc.is_cross
    desc.target_arch = "aarch64"
    assert desc.is_cross
    assert desc.effective_arch() == "aarch64"
