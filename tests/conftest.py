"""Shared fixtures: descriptor factory and recording fake collaborators."""

from __future__ import annotations

import os
import threading
import time
from typing import Iterable, List, Optional, Tuple

import pytest

from yap.modules.descriptor import PackageDescriptor
from yap.modules.errors import BuildStageError


class EventLog:
    """Thread-safe ordered record of (action, package) pairs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: List[Tuple[str, str]] = []

    def add(self, action: str, name: str) -> None:
        with self._lock:
            self.events.append((action, name))

    def names(self, action: str) -> List[str]:
        with self._lock:
            return [n for a, n in self.events if a == action]

    def index(self, action: str, name: str) -> int:
        with self._lock:
            return self.events.index((action, name))


class FakeBuilder:
    def __init__(self, events: EventLog, fail_on: Iterable[str] = (), delay: float = 0.0) -> None:
        self.events = events
        self.fail_on = set(fail_on)
        self.delay = delay
        self.dry_runs: List[bool] = []

    def compile(self, descriptor: PackageDescriptor, dry_run: bool = False) -> None:
        self.events.add("compile", descriptor.name)
        self.dry_runs.append(dry_run)
        if self.delay:
            time.sleep(self.delay)
        if descriptor.name in self.fail_on:
            raise BuildStageError("build stage failed", package=descriptor.name, stage="build")


class FakePacker:
    def __init__(self, descriptor: PackageDescriptor, events: EventLog,
                 fail_install: Iterable[str] = ()) -> None:
        self.descriptor = descriptor
        self.events = events
        self.fail_install = set(fail_install)
        self.prepared: List[List[str]] = []

    def update(self) -> None:
        self.events.add("update", self.descriptor.name)

    def prepare(self, depends: List[str]) -> None:
        self.prepared.append(list(depends))
        self.events.add("prepare", ",".join(depends))

    def prepare_fakeroot(self, output: str) -> None:
        self.events.add("fakeroot", self.descriptor.name)

    def build_package(self, output: str, target_arch: Optional[str] = None) -> str:
        self.events.add("package", self.descriptor.name)
        return os.path.join(output, f"{self.descriptor.name}.pkg")

    def install(self, output: str) -> None:
        if self.descriptor.name in self.fail_install:
            raise RuntimeError("package manager refused")
        self.events.add("install", self.descriptor.name)

    def install_or_extract(self, output: str, build_dir: str, target_arch: Optional[str] = None) -> None:
        self.events.add("extract", self.descriptor.name)


class FakeProject:
    def __init__(self, descriptor: PackageDescriptor, builder: FakeBuilder, packer: FakePacker) -> None:
        self.descriptor = descriptor
        self.builder = builder
        self.packer = packer


def make_descriptor(name: str, depends: Iterable[str] = (), makedepends: Iterable[str] = (),
                    must_install: bool = False) -> PackageDescriptor:
    return PackageDescriptor(name=name, version="1.0", depends=list(depends),
                             makedepends=list(makedepends), must_install=must_install)


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def descriptor_factory():
    return make_descriptor


@pytest.fixture
def project_factory(events):
    """Build FakeProjects sharing one builder and one event log."""

    def _factory(descriptors, fail_on: Iterable[str] = (), fail_install: Iterable[str] = (),
                 delay: float = 0.0):
        builder = FakeBuilder(events, fail_on=fail_on, delay=delay)
        return [FakeProject(d, builder, FakePacker(d, events, fail_install)) for d in descriptors]

    return _factory
