# yap/modules/descriptor.py
"""
PackageDescriptor - metadata and dependency lists of one package.

Descriptors come out of the recipe parser; MultipleProject sets the
architecture fields and the install flag once during population and nothing
changes them afterwards.
"""

from __future__ import annotations
import os
import platform
import re
from typing import List, Optional, Tuple

from yap.modules.errors import RecipeError

_CONSTRAINT_START = re.compile(r"[<>=]")

# uname spellings -> names used in recipes
ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "armv7l": "armv7h",
    "armv6l": "armv6h",
    "i386": "i686",
}


def split_dependency(dep: str) -> Tuple[str, str]:
    """
    Split ``"name >= 1.0"`` (or ``"name>=1.0"``) into ``("name", ">= 1.0")``.
    Never raises; an empty entry gives ``("", "")``.
    """
    fields = (dep or "").split()
    if not fields:
        return "", ""
    head = fields[0]
    rest = " ".join(fields[1:])
    m = _CONSTRAINT_START.search(head)
    if m and m.start() > 0:
        rest = (head[m.start():] + " " + rest).strip()
        head = head[:m.start()]
    return head, rest


def dependency_names(deps: List[str]) -> List[str]:
    names = []
    for dep in deps:
        name, _ = split_dependency(dep)
        if name and name not in names:
            names.append(name)
    return names


def normalize_arch(arch: str) -> str:
    arch = (arch or "").strip().lower()
    return ARCH_ALIASES.get(arch, arch)


def host_arch() -> str:
    return normalize_arch(platform.machine())


class PackageDescriptor:
    def __init__(self,
                 name: str,
                 version: str,
                 release: str = "1",
                 depends: Optional[List[str]] = None,
                 makedepends: Optional[List[str]] = None,
                 must_install: bool = False,
                 target_arch: Optional[str] = None,
                 arch: Optional[List[str]] = None,
                 epoch: str = "",
                 description: str = "",
                 url: str = "",
                 license: Optional[List[str]] = None,
                 maintainer: str = "",
                 sources: Optional[List[str]] = None,
                 sha256sums: Optional[List[str]] = None,
                 prepare: str = "",
                 build: str = "",
                 package: str = "",
                 distro: str = "",
                 codename: str = "",
                 start_dir: str = "",
                 home: str = ""):
        self.name = name
        self.version = str(version)
        self.release = str(release)
        self.epoch = str(epoch or "")
        self.depends = list(depends or [])
        self.makedepends = list(makedepends or [])
        self.must_install = must_install
        self.target_arch = target_arch or ""
        self.arch = list(arch or ["any"])
        self.arch_computed = ""
        self.description = description
        self.url = url
        self.license = list(license or [])
        self.maintainer = maintainer
        self.sources = list(sources or [])
        self.sha256sums = list(sha256sums or [])
        self.prepare = prepare or ""
        self.build = build or ""
        self.package = package or ""
        self.distro = distro
        self.codename = codename
        self.start_dir = start_dir
        self.home = home

    # ---------------------------
    # Layout
    # ---------------------------
    @property
    def src_dir(self) -> str:
        return os.path.join(self.start_dir, "src")

    @property
    def pkg_dir(self) -> str:
        return os.path.join(self.start_dir, "pkg")

    @property
    def full_version(self) -> str:
        base = f"{self.version}-{self.release}"
        return f"{self.epoch}:{base}" if self.epoch else base

    @property
    def is_cross(self) -> bool:
        return bool(self.target_arch) and normalize_arch(self.target_arch) != host_arch()

    # ---------------------------
    # Architecture
    # ---------------------------
    def compute_architecture(self, machine: Optional[str] = None) -> str:
        """Resolve ``arch_computed`` against the build host (``any`` wins)."""
        machine = normalize_arch(machine or host_arch())
        declared = [normalize_arch(a) for a in self.arch]
        if "any" in declared:
            self.arch_computed = "any"
        elif machine in declared:
            self.arch_computed = machine
        else:
            raise RecipeError(f"unsupported architecture {machine}, recipe declares {self.arch}",
                              package=self.name)
        return self.arch_computed

    def effective_arch(self) -> str:
        """Architecture the artifact is built for."""
        if self.target_arch:
            return normalize_arch(self.target_arch)
        return self.arch_computed or host_arch()

    def __repr__(self):
        return f"PackageDescriptor({self.name}-{self.full_version})"
