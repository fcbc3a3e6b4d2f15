"""Tests for packer dispatch, naming and artifact contents."""

from __future__ import annotations

import tarfile

import pytest

from yap.modules import packer as packer_mod
from yap.modules.descriptor import PackageDescriptor
from yap.modules.errors import ProjectError
from yap.modules.packer import ApkPacker, DebPacker, PacmanPacker, RpmPacker, get_packer


class RecordingShell:
    def __init__(self) -> None:
        self.commands = []
        self.pipelines = []

    def run(self, command, cwd=None, env=None, check=True, privileged=False):
        self.commands.append((list(command), privileged))

    def run_pipeline(self, commands, cwd=None, env=None):
        self.pipelines.append((commands, cwd))


@pytest.fixture
def shell():
    return RecordingShell()


@pytest.fixture
def descriptor(tmp_path):
    desc = PackageDescriptor("hello", "2.12", release="3", depends=["glibc >= 2.30", "zlib"],
                             description="greeter", license=["GPL-3.0"], start_dir=str(tmp_path / "hello"))
    desc.arch_computed = "x86_64"
    (tmp_path / "hello" / "pkg" / "usr" / "bin").mkdir(parents=True)
    (tmp_path / "hello" / "pkg" / "usr" / "bin" / "hello").write_text("#!/bin/sh\necho hi\n")
    return desc


@pytest.mark.parametrize("distro, cls", [
    ("ubuntu", DebPacker),
    ("fedora", RpmPacker),
    ("opensuse-leap", RpmPacker),
    ("alpine", ApkPacker),
    ("arch", PacmanPacker),
])
def test_dispatch(descriptor, distro, cls) -> None:
    assert isinstance(get_packer(descriptor, distro), cls)


def test_unknown_distro(descriptor) -> None:
    with pytest.raises(ProjectError):
        get_packer(descriptor, "beos")


def test_artifact_names(descriptor) -> None:
    assert get_packer(descriptor, "debian").artifact_name() == "hello_2.12-3_amd64.deb"
    assert get_packer(descriptor, "rocky").artifact_name() == "hello-2.12-3.x86_64.rpm"
    assert get_packer(descriptor, "alpine").artifact_name() == "hello-2.12-r3.apk"
    assert get_packer(descriptor, "arch").artifact_name("aarch64") == "hello-2.12-3-aarch64.pkg.tar.xz"


def test_deb_filename_leaves_epoch_to_control(descriptor) -> None:
    descriptor.epoch = "1"
    packer = get_packer(descriptor, "debian")
    assert packer.artifact_name() == "hello_2.12-3_amd64.deb"
    assert "Version: 1:2.12-3" in packer.control("amd64")


def test_prepare_drops_constraints(descriptor, shell) -> None:
    packer = get_packer(descriptor, "ubuntu", shell=shell)
    packer.prepare(["cmake >= 3", "gcc", "cmake"])
    command, privileged = shell.commands[-1]
    assert command[0] == "apt-get"
    assert command[-2:] == ["cmake", "gcc"]
    assert privileged is True


def test_pacman_tarball_carries_pkginfo(descriptor, shell, tmp_path) -> None:
    packer = get_packer(descriptor, "arch", shell=shell)
    artifact = packer.build_package(str(tmp_path / "out"))
    with tarfile.open(artifact) as tar:
        names = tar.getnames()
        pkginfo = tar.extractfile(".PKGINFO").read().decode()
    assert "usr/bin/hello" in names
    assert "pkgname = hello" in pkginfo
    assert "depend = glibc >= 2.30" in pkginfo
    assert "arch = x86_64" in pkginfo


def test_apk_extracts_into_staging(descriptor, shell, tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(packer_mod, "host_arch", lambda: "x86_64")
    packer = get_packer(descriptor, "alpine", shell=shell)
    packer.build_package(str(tmp_path / "out"))
    staging = packer.install_or_extract(str(tmp_path / "out"), str(tmp_path / "build"), "aarch64")
    assert staging == str(tmp_path / "build" / "staging" / "aarch64")
    assert (tmp_path / "build" / "staging" / "aarch64" / "usr" / "bin" / "hello").exists()
    assert not (tmp_path / "build" / "staging" / "aarch64" / ".PKGINFO").exists()
    assert shell.commands == []


def test_native_target_installs(descriptor, shell, tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(packer_mod, "host_arch", lambda: "x86_64")
    packer = get_packer(descriptor, "alpine", shell=shell)
    packer.build_package(str(tmp_path / "out"))
    packer.install_or_extract(str(tmp_path / "out"), str(tmp_path / "build"), "amd64")
    command, privileged = shell.commands[-1]
    assert command[0] == "apk"
    assert command[-1].endswith("hello-2.12-r3.apk")


def test_deb_control_and_build_command(descriptor, shell, tmp_path) -> None:
    packer = get_packer(descriptor, "debian", shell=shell)
    control = packer.control("amd64")
    assert "Depends: glibc (>= 2.30), zlib" in control
    assert "Version: 2.12-3" in control
    packer.build_package(str(tmp_path / "out"))
    command, _ = shell.commands[-1]
    assert command[:3] == ["dpkg-deb", "--build", "--root-owner-group"]
    assert (tmp_path / "hello" / "pkg" / "DEBIAN" / "control").exists()


def test_rpm_spec_lists_files(descriptor) -> None:
    spec = RpmPacker(descriptor, "yum").spec("x86_64")
    assert "Requires: glibc >= 2.30" in spec
    assert "/usr/bin/hello" in spec
