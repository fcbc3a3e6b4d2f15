"""Tests for the dependency graph, popularity and batching."""

from __future__ import annotations

import pytest

from yap.modules.errors import CircularDependencyError
from yap.modules.graph import (
    BUILD,
    RUNTIME,
    DependencyGraph,
    build_dependency_map,
    runtime_dependency_map,
    topological_batches,
)

from conftest import make_descriptor


def _names(batches):
    return [[d.name for d in batch] for batch in batches]


def test_library_before_application() -> None:
    graph = DependencyGraph([make_descriptor("app", ["lib"]), make_descriptor("lib")])
    assert _names(topological_batches(graph)) == [["lib"], ["app"]]


def test_cycle_names_every_member() -> None:
    graph = DependencyGraph([make_descriptor("a", ["b"]), make_descriptor("b", ["a"])])
    with pytest.raises(CircularDependencyError) as excinfo:
        topological_batches(graph)
    assert excinfo.value.remaining == {"a": 1, "b": 1}
    assert "a(1)" in str(excinfo.value)
    assert "b(1)" in str(excinfo.value)
    assert excinfo.value.exit_code == 3


def test_popularity_counts_dependents() -> None:
    graph = DependencyGraph([
        make_descriptor("a", ["c"]),
        make_descriptor("b", ["c"]),
        make_descriptor("c"),
    ])
    assert graph.popularity() == {"a": 0, "b": 0, "c": 2}
    assert _names(topological_batches(graph)) == [["c"], ["a", "b"]]


def test_popular_packages_lead_their_batch() -> None:
    descriptors = [
        make_descriptor("zlib"),
        make_descriptor("alpha"),
        make_descriptor("x", ["zlib"]),
        make_descriptor("y", ["zlib"]),
    ]
    batches = _names(topological_batches(DependencyGraph(descriptors)))
    assert batches[0] == ["zlib", "alpha"]


def test_constraints_and_externals_are_not_edges() -> None:
    graph = DependencyGraph([
        make_descriptor("app", ["lib>=1.0", "glibc"], ["cmake", "gen = 2"]),
        make_descriptor("lib"),
        make_descriptor("gen"),
    ])
    assert sorted(graph.depends_on["app"]) == ["gen", "lib"]
    assert {(e.dependency, e.kind) for e in graph.edges} == {("lib", RUNTIME), ("gen", BUILD)}
    assert graph.external_depends(RUNTIME) == ["glibc"]
    assert graph.external_depends(BUILD) == ["cmake"]


def test_duplicate_dependency_counts_once() -> None:
    graph = DependencyGraph([make_descriptor("app", ["lib"], ["lib"]), make_descriptor("lib")])
    assert graph.popularity()["lib"] == 1
    assert graph.in_degrees()["app"] == 1
    assert _names(topological_batches(graph)) == [["lib"], ["app"]]


def test_every_package_in_exactly_one_batch() -> None:
    descriptors = [
        make_descriptor("d", ["b", "c"]),
        make_descriptor("c", ["a"]),
        make_descriptor("b", ["a"]),
        make_descriptor("a"),
        make_descriptor("e"),
    ]
    batches = _names(topological_batches(DependencyGraph(descriptors)))
    flat = [n for batch in batches for n in batch]
    assert sorted(flat) == ["a", "b", "c", "d", "e"]
    position = {n: i for i, batch in enumerate(batches) for n in batch}
    assert position["a"] < position["b"] < position["d"]
    assert position["c"] < position["d"]


def test_runtime_map_only_marks_depends() -> None:
    descriptors = [
        make_descriptor("app", ["lib"], ["tool"]),
        make_descriptor("lib"),
        make_descriptor("tool"),
    ]
    assert runtime_dependency_map(descriptors) == {"app": False, "lib": True, "tool": False}
    assert build_dependency_map(descriptors) == {"app": False, "lib": False, "tool": True}


def test_export_dot_writes_edges(tmp_path) -> None:
    graph = DependencyGraph([make_descriptor("app", ["lib"]), make_descriptor("lib")])
    out = tmp_path / "deps.dot"
    text = graph.export_dot(str(out), highlight={"lib": True})
    assert out.read_text() == text
    assert '"lib" -> "app";' in text
    assert text.startswith("digraph dependencies {")
