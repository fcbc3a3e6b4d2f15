# yap/modules/graph.py
"""
Dependency graph among the packages of one run.

Only internal dependencies (entries naming another package of the run) become
edges; everything else is an external dependency the host package manager
installs before building starts. The graph feeds:
 - popularity(): how many packages depend on each package
 - topological_batches(): Kahn's algorithm, one batch per in-degree-zero wave
 - export_dot(): Graphviz view of the internal edges
"""

from __future__ import annotations
from collections import OrderedDict
from typing import Dict, Iterable, List, NamedTuple, Optional

from yap.modules import logger as _logger
from yap.modules.descriptor import PackageDescriptor, split_dependency
from yap.modules.errors import CircularDependencyError

RUNTIME = "runtime"
BUILD = "build"

LOG = _logger.Logger("graph")

PREFIX_MIDDLE = "  │  ├─"
PREFIX_LAST = "  │  └─"


class Edge(NamedTuple):
    dependent: str
    dependency: str
    kind: str


class DependencyGraph:
    def __init__(self, descriptors: Iterable[PackageDescriptor]):
        self.packages: "OrderedDict[str, PackageDescriptor]" = OrderedDict()
        for desc in descriptors:
            self.packages[desc.name] = desc

        self.edges: List[Edge] = []
        self.depends_on: Dict[str, List[str]] = {name: [] for name in self.packages}
        self.depended_by: Dict[str, List[str]] = {name: [] for name in self.packages}

        for name, desc in self.packages.items():
            self._add_edges(name, desc.depends, RUNTIME)
            self._add_edges(name, desc.makedepends, BUILD)

    def _add_edges(self, name: str, deps: List[str], kind: str):
        for dep in deps:
            dep_name, _ = split_dependency(dep)
            if dep_name not in self.packages:
                continue
            self.edges.append(Edge(name, dep_name, kind))
            if dep_name not in self.depends_on[name]:
                self.depends_on[name].append(dep_name)
                self.depended_by[dep_name].append(name)

    def __len__(self) -> int:
        return len(self.packages)

    # ---------------------------
    # Queries
    # ---------------------------
    def popularity(self) -> Dict[str, int]:
        """name -> number of distinct in-set packages depending on it"""
        return {name: len(self.depended_by[name]) for name in self.packages}

    def in_degrees(self) -> Dict[str, int]:
        return {name: len(self.depends_on[name]) for name in self.packages}

    def external_depends(self, kind: str = RUNTIME) -> List[str]:
        """Dependency entries that do not name a package of this graph (order kept, deduplicated)."""
        attr = "depends" if kind == RUNTIME else "makedepends"
        out: List[str] = []
        for desc in self.packages.values():
            for dep in getattr(desc, attr):
                dep_name, _ = split_dependency(dep)
                if dep_name and dep_name not in self.packages and dep not in out:
                    out.append(dep)
        return out

    # ---------------------------
    # Export / report
    # ---------------------------
    def export_dot(self, output: Optional[str] = None,
                   highlight: Optional[Dict[str, bool]] = None) -> str:
        highlight = highlight or {}
        lines = ["digraph dependencies {", "  rankdir=LR;"]
        for name in self.packages:
            attrs = ' [style=filled, fillcolor="lightblue"]' if highlight.get(name) else ""
            lines.append(f'  "{name}"{attrs};')
        for edge in self.edges:
            style = "" if edge.kind == RUNTIME else " [style=dashed]"
            lines.append(f'  "{edge.dependency}" -> "{edge.dependent}"{style};')
        lines.append("}")
        text = "\n".join(lines) + "\n"
        if output:
            with open(output, "w", encoding="utf-8") as fh:
                fh.write(text)
            LOG.info(f"Graph exported to {output}")
        return text

    def describe(self, install_map: Optional[Dict[str, bool]] = None):
        """Debug-level dependency report, one tree per package."""
        install_map = install_map or {}
        LOG.debug("dependency analysis starting")
        for name, desc in self.packages.items():
            LOG.debug(f"📦 {name}-{desc.full_version}")
            if desc.depends:
                self._describe_list("Runtime Dependencies", desc.depends)
            if desc.makedepends:
                self._describe_list("Build Dependencies", desc.makedepends)
            if desc.must_install:
                LOG.debug("  └─ Will be installed after build (explicitly marked)")
            elif install_map.get(name):
                LOG.debug("  └─ Will be installed after build (dependency of another package)")
            else:
                LOG.debug("  └─ Build only (no installation)")
        LOG.debug("dependency analysis complete")

    def _describe_list(self, title: str, deps: List[str]):
        LOG.debug(f"  ├─ {title}:")
        tagged = []
        for dep in deps:
            dep_name, _ = split_dependency(dep)
            tagged.append((0 if dep_name in self.packages else 1, dep))
        tagged.sort(key=lambda t: t[0])
        for index, (external, dep) in enumerate(tagged):
            prefix = PREFIX_LAST if index == len(tagged) - 1 else PREFIX_MIDDLE
            LOG.debug(f"{prefix} {dep} ({'external' if external else 'internal'})")


# ---------------------------
# Classifiers
# ---------------------------
def _dependency_map(descriptors: Iterable[PackageDescriptor], attr: str) -> Dict[str, bool]:
    descriptors = list(descriptors)
    names = {d.name for d in descriptors}
    result = {name: False for name in names}
    for desc in descriptors:
        for dep in getattr(desc, attr):
            dep_name, _ = split_dependency(dep)
            if dep_name in names:
                result[dep_name] = True
    return result


def runtime_dependency_map(descriptors: Iterable[PackageDescriptor]) -> Dict[str, bool]:
    """name -> True when another package of the set lists it in ``depends``"""
    return _dependency_map(descriptors, "depends")


def build_dependency_map(descriptors: Iterable[PackageDescriptor]) -> Dict[str, bool]:
    """name -> True when another package of the set lists it in ``makedepends``"""
    return _dependency_map(descriptors, "makedepends")


# ---------------------------
# Kahn's algorithm
# ---------------------------
def topological_batches(graph: DependencyGraph,
                        popularity: Optional[Dict[str, int]] = None) -> List[List[PackageDescriptor]]:
    """
    Batches of packages whose in-set dependencies all live in earlier batches.
    Inside a batch the most depended-upon packages come first, ties by name.
    """
    popularity = popularity if popularity is not None else graph.popularity()
    in_degree = graph.in_degrees()
    batches: List[List[PackageDescriptor]] = []

    while in_degree:
        candidates = [name for name, degree in in_degree.items() if degree == 0]
        if not candidates:
            LOG.error("circular dependency detected",
                      remaining_packages=", ".join(f"{n}({d})" for n, d in sorted(in_degree.items())))
            raise CircularDependencyError(in_degree)

        candidates.sort(key=lambda n: (-popularity.get(n, 0), n))
        batches.append([graph.packages[name] for name in candidates])
        LOG.debug("build batch determined", batch_number=len(batches), batch_size=len(candidates),
                  packages=", ".join(f"{n}(deps:{popularity.get(n, 0)})" for n in candidates))

        for name in candidates:
            del in_degree[name]
            for dependent in graph.depended_by[name]:
                if dependent in in_degree:
                    in_degree[dependent] -= 1

    LOG.info("build order determined", total_batches=len(batches), total_packages=len(graph))
    return batches
