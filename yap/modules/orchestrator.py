# yap/modules/orchestrator.py
"""
BuildOrchestrator - drives compile / package / install for a run.

Two modes:
 - sequential (default): declared order, the dependency graph is not consulted
 - parallel: topological batches; inside a batch the packages other packages
   depend on at runtime are built first and each is installed as soon as its
   own artifact exists, then the remaining packages are built
"""

from __future__ import annotations
import threading
import time
from typing import Any, Dict, List, Optional, Sequence

from yap.modules import logger as _logger
from yap.modules.config import BuildConfig
from yap.modules.errors import InstallError, PackagingError
from yap.modules.graph import (
    DependencyGraph,
    build_dependency_map,
    runtime_dependency_map,
    topological_batches,
)
from yap.modules.pool import WorkerPool


class BuildOrchestrator:
    def __init__(self,
                 config: BuildConfig,
                 projects: Sequence[Any],
                 output: str,
                 build_dir: str,
                 full_set: Optional[Sequence[Any]] = None):
        """
        projects: the (range-filtered) projects to build, each exposing
        ``descriptor``, ``builder`` and ``packer``.
        full_set: every descriptor of the project set; dependency
        classification runs over it, not over the filtered list.
        """
        self.config = config
        self.projects = list(projects)
        self.output = output
        self.build_dir = build_dir
        full = list(full_set) if full_set is not None else [p.descriptor for p in self.projects]
        self.runtime_deps = runtime_dependency_map(full)
        self.build_deps = build_dependency_map(full)

        self.log = _logger.Logger("orchestrator")
        self._lock = threading.Lock()
        self.metrics: Dict[str, Any] = {
            "built": 0,
            "packaged": 0,
            "installed": 0,
            "mode": "parallel" if config.parallel else "sequential",
            "batches": [],
            "start_time": time.time(),
            "packages": {},
        }

    # ---------------------------
    # Policy
    # ---------------------------
    def needs_install(self, descriptor) -> bool:
        return bool(descriptor.must_install
                    or self.runtime_deps.get(descriptor.name)
                    or self.build_deps.get(descriptor.name))

    def install_map(self) -> Dict[str, bool]:
        return {p.descriptor.name: self.needs_install(p.descriptor) for p in self.projects}

    # ---------------------------
    # Entry
    # ---------------------------
    def run(self) -> Dict[str, Any]:
        if not self.projects:
            self.log.warning("nothing to build")
        elif self.config.parallel:
            self._run_parallel()
        else:
            self._run_sequential()
        self.metrics["end_time"] = time.time()
        self.log.success(f"Build finished: {self.metrics['built']} built, "
                         f"{self.metrics['installed']} installed")
        return self.metrics

    def _run_sequential(self):
        self.log.info("building packages in declared order", count=len(self.projects))
        for project in self.projects:
            name = project.descriptor.name
            self.process(project, self.needs_install(project.descriptor))
            if self.config.to_pkg and name == self.config.to_pkg:
                self.log.info("stopping build at target package", target_package=name)
                return

    def _run_parallel(self):
        by_name = {p.descriptor.name: p for p in self.projects}
        graph = DependencyGraph([p.descriptor for p in self.projects])
        batches = topological_batches(graph, graph.popularity())
        self.metrics["batches"] = [[d.name for d in batch] for batch in batches]
        workers = self.config.workers

        for index, batch in enumerate(batches, start=1):
            names = [d.name for d in batch]
            runtime = [by_name[n] for n in names if self.runtime_deps.get(n)]
            regular = [by_name[n] for n in names if not self.runtime_deps.get(n)]
            self.log.info(f"Building batch {index}/{len(batches)}", packages=", ".join(names))

            if runtime:
                self.log.info("building runtime dependencies", count=len(runtime))
                self._run_phase(runtime, workers, f"batch{index}-runtime", always_install=True)
            if regular:
                self.log.info("building regular packages", count=len(regular))
                self._run_phase(regular, workers, f"batch{index}-regular", always_install=False)

            if self.config.to_pkg and self.config.to_pkg in names:
                self.log.info("stopping build at target package", target_package=self.config.to_pkg)
                return

    def _run_phase(self, projects: List[Any], workers: int, name: str, always_install: bool):
        pool = WorkerPool(min(workers, len(projects)), name=name)
        jobs = []
        for project in projects:
            install = always_install or self.needs_install(project.descriptor)
            jobs.append(lambda p=project, i=install: self.process(p, i))
        pool.run(jobs, labels=[p.descriptor.name for p in projects])

    # ---------------------------
    # Single package pipeline
    # ---------------------------
    def process(self, project, install: bool) -> Dict[str, Any]:
        """compile, then package and (optionally) install one project"""
        desc = project.descriptor
        log = _logger.Logger(desc.name)
        started = time.time()
        log.info("making package", pkgver=desc.version, pkgrel=desc.release)

        project.builder.compile(desc, dry_run=self.config.no_build)
        record: Dict[str, Any] = {"status": "built", "installed": False}
        self._count("built")

        if not self.config.no_build:
            record["artifact"] = self._package(project)
            self._count("packaged")
            if install:
                self._install(project)
                record["installed"] = True
                self._count("installed")

        record["duration"] = round(time.time() - started, 3)
        with self._lock:
            self.metrics["packages"][desc.name] = record
        log.success("package done", installed=record["installed"])
        return record

    def _package(self, project) -> Optional[str]:
        desc = project.descriptor
        packer = project.packer
        try:
            packer.prepare_fakeroot(self.output)
            return packer.build_package(self.output, self.config.target_arch or None)
        except PackagingError:
            raise
        except Exception as e:
            raise PackagingError("packaging failed", package=desc.name, cause=e) from e

    def _install(self, project):
        desc = project.descriptor
        log = _logger.Logger(desc.name)
        log.info("installing package")
        try:
            if self.config.target_arch:
                project.packer.install_or_extract(self.output, self.build_dir, self.config.target_arch)
            else:
                project.packer.install(self.output)
        except InstallError:
            raise
        except Exception as e:
            raise InstallError("installation failed", package=desc.name, cause=e) from e

    def _count(self, key: str):
        with self._lock:
            self.metrics[key] += 1
