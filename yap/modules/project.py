# yap/modules/project.py
"""
MultipleProject - a project set and its build run.

A project set is either a directory holding ``yap.json``::

    {
      "name": "suite",
      "description": "all our packages",
      "buildDir": "/tmp/yap-build",
      "output": "artifacts",
      "projects": [{"name": "libfoo", "install": true}, {"name": "foo"}]
    }

where every listed name is a sub-directory with a ``recipe.yaml``, or a single
directory holding ``recipe.yaml`` directly.
"""

from __future__ import annotations
import json
import os
import shutil
from typing import Any, Callable, Dict, List, Optional

from yap.modules import logger as _logger
from yap.modules import recipe as _recipe
from yap.modules.builder import Builder
from yap.modules.config import BuildConfig
from yap.modules.descriptor import PackageDescriptor
from yap.modules.errors import ProjectError
from yap.modules.graph import DependencyGraph, BUILD, RUNTIME
from yap.modules.orchestrator import BuildOrchestrator
from yap.modules.packer import ARTIFACT_EXTENSIONS, Packer, get_packer, package_manager_for
from yap.modules.selection import check_range, filter_range

PROJECT_FILE = "yap.json"
REQUIRED_KEYS = ("name", "description", "buildDir", "output", "projects")


class Project:
    """One package of the set: its descriptor plus the tools that build it."""

    def __init__(self, descriptor: PackageDescriptor, builder: Builder, packer: Packer):
        self.descriptor = descriptor
        self.builder = builder
        self.packer = packer

    @property
    def name(self) -> str:
        return self.descriptor.name

    def __repr__(self):
        return f"Project({self.descriptor.name})"


def _ignore_artifacts(directory: str, names: List[str]) -> List[str]:
    skipped = []
    for fn in names:
        path = os.path.join(directory, fn)
        if fn.endswith(ARTIFACT_EXTENSIONS) or os.path.islink(path):
            skipped.append(fn)
    return skipped


class MultipleProject:
    def __init__(self,
                 config: Optional[BuildConfig] = None,
                 packer_factory: Callable[..., Packer] = get_packer,
                 builder: Optional[Builder] = None):
        self.config = config or BuildConfig()
        self.packer_factory = packer_factory
        self.builder = builder or Builder()
        self.log = _logger.Logger("project")

        self.name = ""
        self.description = ""
        self.build_dir = ""
        self.output = ""
        self.entries: List[Dict[str, Any]] = []
        self.home = ""
        self.single = False
        self.projects: List[Project] = []
        self.distro = ""
        self.release = ""
        self.host_packer: Optional[Packer] = None

    # ---------------------------
    # Project file
    # ---------------------------
    def read(self, path: str):
        """Read ``yap.json`` or detect a single-recipe directory."""
        path = os.path.abspath(path)
        json_file = os.path.join(path, PROJECT_FILE)
        recipe_file = os.path.join(path, _recipe.RECIPE_FILE)

        if os.path.isfile(json_file):
            self.log.info("multi-project file found", path=json_file)
            try:
                with open(json_file, "r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, json.JSONDecodeError) as e:
                raise ProjectError(f"cannot read {json_file}", cause=e) from e
            self._apply(data, path)
        elif os.path.isfile(recipe_file):
            self.log.info("single-project file found", path=recipe_file)
            self.single = True
            self.build_dir = path
            self.output = path
            self.entries = [{"name": "", "install": False}]
        else:
            raise ProjectError(f"no {PROJECT_FILE} or {_recipe.RECIPE_FILE} found in {path}")
        self.home = path

    def _apply(self, data: Any, path: str):
        if not isinstance(data, dict):
            raise ProjectError(f"{PROJECT_FILE} must contain an object")
        missing = [k for k in REQUIRED_KEYS if not data.get(k)]
        if missing:
            raise ProjectError(f"{PROJECT_FILE}: missing required keys: {', '.join(missing)}")
        if not isinstance(data["projects"], list):
            raise ProjectError(f"{PROJECT_FILE}: projects must be a list")

        entries = []
        for item in data["projects"]:
            if not isinstance(item, dict) or not item.get("name"):
                raise ProjectError(f"{PROJECT_FILE}: every project needs a name")
            name = str(item["name"])
            if name.startswith("."):
                raise ProjectError(f"{PROJECT_FILE}: project name must not be relative: {name}")
            entries.append({"name": name, "install": bool(item.get("install", False))})

        self.name = data["name"]
        self.description = data["description"]
        self.build_dir = os.path.normpath(os.path.join(path, os.path.expanduser(data["buildDir"])))
        self.output = os.path.normpath(os.path.join(path, os.path.expanduser(data["output"])))
        self.entries = entries

    # ---------------------------
    # Population
    # ---------------------------
    def descriptors_for(self, distro: str, release: str = "", manager: str = "") -> List[PackageDescriptor]:
        """Parse every recipe of the set; no side effects on disk."""
        descriptors = []
        for entry in self.entries:
            if self.single:
                start_dir = home = self.home
            else:
                start_dir = os.path.join(self.build_dir, entry["name"])
                home = os.path.join(self.home, entry["name"])
            desc = _recipe.parse(distro, release, start_dir, home, package_manager=manager)
            desc.must_install = entry["install"]
            descriptors.append(desc)
        return descriptors

    def populate(self, distro: str, release: str = ""):
        manager = package_manager_for(distro) if distro else ""
        projects = []
        for desc in self.descriptors_for(distro, release, manager):
            desc.compute_architecture()
            if self.config.target_arch:
                desc.target_arch = self.config.target_arch
            projects.append(Project(desc, self.builder, self.packer_factory(desc, distro)))

        names = [p.name for p in projects]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ProjectError(f"duplicate package names: {', '.join(duplicates)}")
        self.projects = projects

    def clean(self):
        for project in self.projects:
            desc = project.descriptor
            if self.config.clean_build and os.path.isdir(desc.src_dir):
                self.log.info("removing source directory", path=desc.src_dir)
                shutil.rmtree(desc.src_dir)
            if self.config.zap and not self.single and os.path.isdir(desc.start_dir):
                self.log.info("removing build directory", path=desc.start_dir)
                shutil.rmtree(desc.start_dir)

    def copy(self):
        for project in self.projects:
            desc = project.descriptor
            if not self.single:
                shutil.copytree(desc.home, desc.start_dir, symlinks=True,
                                ignore=_ignore_artifacts, dirs_exist_ok=True)
            os.makedirs(desc.pkg_dir, exist_ok=True)

    # ---------------------------
    # External dependencies
    # ---------------------------
    def external_depends(self, kind: str) -> List[str]:
        return DependencyGraph([p.descriptor for p in self.projects]).external_depends(kind)

    def _prepare_external(self, kind: str):
        deps = self.external_depends(kind)
        if not deps:
            return
        self.log.info(f"installing external {kind} dependencies", count=len(deps))
        self.host_packer.prepare(deps)

    # ---------------------------
    # Entry points
    # ---------------------------
    def load(self, distro: str, release: str, path: str):
        self.distro = distro
        self.release = release
        self.read(path)
        os.makedirs(self.build_dir, exist_ok=True)

        self.host_packer = self.packer_factory(PackageDescriptor("host", "0"), distro)
        if not self.config.skip_sync:
            self.host_packer.update()

        self.populate(distro, release)
        if self.config.clean_build or self.config.zap:
            self.clean()
        self.copy()

        if not self.config.skip_make_deps:
            self._prepare_external(BUILD)
        if not self.config.skip_sync:
            self._prepare_external(RUNTIME)
        return self

    def build_all(self) -> Dict[str, Any]:
        descriptors = [p.descriptor for p in self.projects]
        from_pkg, to_pkg = self.config.from_pkg, self.config.to_pkg
        if self.single:
            selected = list(self.projects)
        else:
            check_range(descriptors, from_pkg, to_pkg)
            keep = {d.name for d in filter_range(descriptors, from_pkg, to_pkg)}
            selected = [p for p in self.projects if p.name in keep]

        orchestrator = BuildOrchestrator(self.config, selected, self.output, self.build_dir,
                                         full_set=descriptors)
        DependencyGraph(descriptors).describe(orchestrator.install_map())
        return orchestrator.run()

