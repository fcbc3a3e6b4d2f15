# yap/modules/packer.py
"""
packer.py - turn a built pkg/ directory into a distributable artifact.

One Packer per package format:
 - deb    (apt)          -> dpkg-deb --build
 - rpm    (yum, zypper)  -> rpmbuild -bb with a generated spec
 - apk    (apk)          -> gzip tarball with .PKGINFO
 - pacman (pacman)       -> xz tarball with .PKGINFO

Each packer can also install its artifact through the host package manager or,
when cross compiling, extract it into a staging root instead.
"""

from __future__ import annotations
import io
import os
import tarfile
import time
from typing import Dict, List, Optional

from yap.modules import logger as _logger
from yap.modules.descriptor import (
    PackageDescriptor,
    dependency_names,
    host_arch,
    normalize_arch,
    split_dependency,
)
from yap.modules.errors import ProjectError
from yap.modules.shell import Shell

PACKAGE_MANAGER_CONFIGS: Dict[str, Dict] = {
    "apk": {
        "name": "apk",
        "install_cmd": "apk",
        "install_args": ["add", "--allow-untrusted"],
        "update_args": ["update"],
        "arch_map": {
            "x86_64": "x86_64",
            "i686": "x86",
            "aarch64": "aarch64",
            "arm": "armhf",
            "armv6h": "armhf",
            "armv7h": "armv7",
            "any": "noarch",
        },
        "build_env_deps": ["bash", "build-base", "fakeroot"],
    },
    "apt": {
        "name": "apt",
        "install_cmd": "apt-get",
        "install_args": ["--allow-downgrades", "--assume-yes", "install"],
        "update_args": ["update"],
        "arch_map": {
            "x86_64": "amd64",
            "i686": "i386",
            "aarch64": "arm64",
            "arm": "armel",
            "armv6h": "armel",
            "armv7h": "armhf",
            "any": "all",
        },
        "build_env_deps": ["build-essential", "fakeroot"],
    },
    "pacman": {
        "name": "pacman",
        "install_cmd": "pacman",
        "install_args": ["-U", "--noconfirm"],
        "update_args": ["-Sy"],
        "arch_map": {
            "x86_64": "x86_64",
            "i686": "i686",
            "aarch64": "aarch64",
            "arm": "arm",
            "armv6h": "armv6h",
            "armv7h": "armv7h",
            "any": "any",
        },
        "build_env_deps": ["base-devel", "fakeroot"],
    },
    "yum": {
        "name": "dnf",
        "install_cmd": "dnf",
        "install_args": ["-y", "install"],
        "update_args": [],
        "arch_map": {
            "x86_64": "x86_64",
            "i686": "i686",
            "aarch64": "aarch64",
            "arm": "arm",
            "armv6h": "armv6hl",
            "armv7h": "armv7hl",
            "any": "noarch",
        },
        "build_env_deps": ["rpm-build", "fakeroot"],
    },
    "zypper": {
        "name": "zypper",
        "install_cmd": "zypper",
        "install_args": ["--non-interactive", "install", "--allow-unsigned-rpm"],
        "update_args": ["--non-interactive", "refresh"],
        "arch_map": {
            "x86_64": "x86_64",
            "i686": "i686",
            "aarch64": "aarch64",
            "any": "noarch",
        },
        "build_env_deps": ["rpm-build", "fakeroot"],
    },
}

DISTRO_TO_PACKAGE_MANAGER = {
    "almalinux": "yum",
    "alpine": "apk",
    "amzn": "yum",
    "arch": "pacman",
    "centos": "yum",
    "debian": "apt",
    "fedora": "yum",
    "linuxmint": "apt",
    "manjaro": "pacman",
    "ol": "yum",
    "opensuse-leap": "zypper",
    "opensuse-tumbleweed": "zypper",
    "pop": "apt",
    "rhel": "yum",
    "rocky": "yum",
    "ubuntu": "apt",
}

# already-built artifacts never get copied into the build tree
ARTIFACT_EXTENSIONS = (".apk", ".deb", ".rpm", ".pkg.tar.zst", ".pkg.tar.xz")


def package_manager_for(distro: str) -> str:
    manager = DISTRO_TO_PACKAGE_MANAGER.get(distro)
    if not manager:
        raise ProjectError(f"unsupported linux distro: {distro}")
    return manager


def _walk_files(root: str) -> List[str]:
    files = []
    for current, _, names in os.walk(root):
        for fn in names:
            files.append(os.path.relpath(os.path.join(current, fn), root))
    return sorted(files)


def _installed_size(root: str) -> int:
    total = 0
    for rel in _walk_files(root):
        path = os.path.join(root, rel)
        if not os.path.islink(path):
            total += os.path.getsize(path)
    return total


class Packer:
    format = ""

    def __init__(self, descriptor: PackageDescriptor, manager: str, shell: Optional[Shell] = None):
        self.descriptor = descriptor
        self.manager = manager
        self.config = PACKAGE_MANAGER_CONFIGS[manager]
        self.shell = shell or Shell(use_sudo=True)
        self.artifact: Optional[str] = None
        self.log = _logger.Logger(descriptor.name or "packer")

    # ------------------------
    # Architecture / naming
    # ------------------------
    def package_arch(self, target_arch: Optional[str] = None) -> str:
        arch = normalize_arch(target_arch) if target_arch else (self.descriptor.arch_computed or host_arch())
        return self.config["arch_map"].get(arch, arch)

    def artifact_name(self, target_arch: Optional[str] = None) -> str:
        raise NotImplementedError

    def artifact_path(self, output: str, target_arch: Optional[str] = None) -> str:
        return os.path.join(os.path.abspath(output), self.artifact_name(target_arch))

    # ------------------------
    # Host package manager
    # ------------------------
    def update(self):
        if not self.config["update_args"]:
            return
        self.shell.run([self.config["install_cmd"]] + self.config["update_args"], privileged=True)

    def prepare(self, depends: List[str]):
        """Install external dependencies (constraints dropped) through the host manager."""
        names = dependency_names(depends)
        if not names:
            return
        self.log.info(f"Installing dependencies: {' '.join(names)}")
        self.shell.run([self.config["install_cmd"]] + self.config["install_args"] + names, privileged=True)

    def prepare_environment(self):
        self.prepare(self.config["build_env_deps"])

    # ------------------------
    # Artifact lifecycle
    # ------------------------
    def prepare_fakeroot(self, output: str):
        os.makedirs(output, exist_ok=True)
        os.makedirs(self.descriptor.pkg_dir, exist_ok=True)

    def build_package(self, output: str, target_arch: Optional[str] = None) -> str:
        artifact = self.artifact_path(output, target_arch)
        self.log.info(f"Building {self.format} package {os.path.basename(artifact)}")
        self._write_artifact(artifact, self.package_arch(target_arch))
        self.artifact = artifact
        return artifact

    def install(self, output: str):
        artifact = self.artifact or self.artifact_path(output, self.descriptor.target_arch or None)
        self.log.info(f"Installing {os.path.basename(artifact)}")
        self.shell.run([self.config["install_cmd"]] + self.config["install_args"] + [artifact],
                       privileged=True)

    def install_or_extract(self, output: str, build_dir: str, target_arch: Optional[str] = None):
        """Install natively, or unpack into ``build_dir/staging/<arch>`` for a foreign target."""
        if not target_arch or normalize_arch(target_arch) == host_arch():
            return self.install(output)
        artifact = self.artifact or self.artifact_path(output, target_arch)
        staging = os.path.join(build_dir, "staging", normalize_arch(target_arch))
        os.makedirs(staging, exist_ok=True)
        self.log.info(f"Extracting {os.path.basename(artifact)} into {staging}")
        self.extract(artifact, staging)
        return staging

    def _write_artifact(self, artifact: str, arch: str):
        raise NotImplementedError

    def extract(self, artifact: str, staging: str):
        raise NotImplementedError

    # ------------------------
    # Tarball helpers (apk, pacman)
    # ------------------------
    def _pkginfo_lines(self, arch: str) -> List[str]:
        d = self.descriptor
        lines = [
            f"pkgname = {d.name}",
            f"pkgdesc = {d.description}",
            f"url = {d.url}",
            f"builddate = {int(time.time())}",
            f"packager = {d.maintainer or 'yap'}",
            f"size = {_installed_size(d.pkg_dir)}",
            f"arch = {arch}",
        ]
        lines += [f"license = {lic}" for lic in d.license]
        return lines

    def _write_tarball(self, artifact: str, pkginfo: str, mode: str):
        pkg_dir = self.descriptor.pkg_dir
        os.makedirs(os.path.dirname(artifact), exist_ok=True)
        data = pkginfo.encode("utf-8")
        with tarfile.open(artifact, mode) as tar:
            info = tarfile.TarInfo(name=".PKGINFO")
            info.size = len(data)
            info.mtime = int(time.time())
            tar.addfile(info, io.BytesIO(data))
            for rel in _walk_files(pkg_dir):
                tar.add(os.path.join(pkg_dir, rel), arcname=rel, recursive=False)

    @staticmethod
    def _extract_tarball(artifact: str, staging: str):
        with tarfile.open(artifact) as tar:
            members = [m for m in tar.getmembers() if not os.path.basename(m.name).startswith(".")]
            tar.extractall(staging, members=members, filter="data")


class DebPacker(Packer):
    format = "deb"

    def artifact_name(self, target_arch: Optional[str] = None) -> str:
        d = self.descriptor
        return f"{d.name}_{d.version}-{d.release}_{self.package_arch(target_arch)}.deb"

    @staticmethod
    def _debian_depends(deps: List[str]) -> str:
        out = []
        for dep in deps:
            name, constraint = split_dependency(dep)
            if not name:
                continue
            out.append(f"{name} ({constraint})" if constraint else name)
        return ", ".join(out)

    def control(self, arch: str) -> str:
        d = self.descriptor
        fields = [
            ("Package", d.name),
            ("Version", d.full_version),
            ("Architecture", arch),
            ("Maintainer", d.maintainer or "yap"),
            ("Installed-Size", str(_installed_size(d.pkg_dir) // 1024)),
        ]
        if d.depends:
            fields.append(("Depends", self._debian_depends(d.depends)))
        if d.url:
            fields.append(("Homepage", d.url))
        fields.append(("Description", d.description or d.name))
        return "".join(f"{k}: {v}\n" for k, v in fields)

    def _write_artifact(self, artifact: str, arch: str):
        debian_dir = os.path.join(self.descriptor.pkg_dir, "DEBIAN")
        os.makedirs(debian_dir, exist_ok=True)
        with open(os.path.join(debian_dir, "control"), "w", encoding="utf-8") as fh:
            fh.write(self.control(arch))
        self.shell.run(["dpkg-deb", "--build", "--root-owner-group", self.descriptor.pkg_dir, artifact])

    def extract(self, artifact: str, staging: str):
        self.shell.run(["dpkg-deb", "-x", artifact, staging])


class RpmPacker(Packer):
    format = "rpm"

    def artifact_name(self, target_arch: Optional[str] = None) -> str:
        d = self.descriptor
        return f"{d.name}-{d.version}-{d.release}.{self.package_arch(target_arch)}.rpm"

    def spec(self, arch: str) -> str:
        d = self.descriptor
        lines = [
            f"Name: {d.name}",
            f"Version: {d.version}",
            f"Release: {d.release}",
            f"Summary: {d.description or d.name}",
            f"License: {' and '.join(d.license) or 'Unknown'}",
            f"BuildArch: {arch}",
            "AutoReqProv: no",
        ]
        if d.epoch:
            lines.append(f"Epoch: {d.epoch}")
        if d.url:
            lines.append(f"URL: {d.url}")
        for dep in d.depends:
            name, constraint = split_dependency(dep)
            if name:
                lines.append(f"Requires: {name} {constraint}".rstrip())
        lines += [
            "",
            "%description",
            d.description or d.name,
            "",
            "%install",
            f"cp -a {d.pkg_dir}/. %{{buildroot}}/",
            "",
            "%files",
        ]
        lines += ["/" + rel for rel in _walk_files(d.pkg_dir)]
        return "\n".join(lines) + "\n"

    def _write_artifact(self, artifact: str, arch: str):
        d = self.descriptor
        spec_path = os.path.join(d.start_dir, f"{d.name}.spec")
        with open(spec_path, "w", encoding="utf-8") as fh:
            fh.write(self.spec(arch))
        self.shell.run([
            "rpmbuild", "-bb",
            "--define", f"_topdir {os.path.join(d.start_dir, 'rpmbuild')}",
            "--define", f"_rpmdir {os.path.dirname(artifact)}",
            "--define", "_build_name_fmt %%{NAME}-%%{VERSION}-%%{RELEASE}.%%{ARCH}.rpm",
            "--target", arch,
            spec_path,
        ])

    def extract(self, artifact: str, staging: str):
        self.shell.run_pipeline([["rpm2cpio", artifact], ["cpio", "-idmu", "--quiet"]], cwd=staging)


class ApkPacker(Packer):
    format = "apk"

    def artifact_name(self, target_arch: Optional[str] = None) -> str:
        d = self.descriptor
        return f"{d.name}-{d.version}-r{d.release}.apk"

    def pkginfo(self, arch: str) -> str:
        d = self.descriptor
        lines = self._pkginfo_lines(arch)
        lines.insert(1, f"pkgver = {d.version}-r{d.release}")
        lines += [f"depend = {dep}" for dep in d.depends]
        return "\n".join(lines) + "\n"

    def _write_artifact(self, artifact: str, arch: str):
        self._write_tarball(artifact, self.pkginfo(arch), "w:gz")

    def extract(self, artifact: str, staging: str):
        self._extract_tarball(artifact, staging)


class PacmanPacker(Packer):
    format = "pacman"

    def artifact_name(self, target_arch: Optional[str] = None) -> str:
        d = self.descriptor
        version = f"{d.epoch}:{d.version}" if d.epoch else d.version
        return f"{d.name}-{version}-{d.release}-{self.package_arch(target_arch)}.pkg.tar.xz"

    def pkginfo(self, arch: str) -> str:
        d = self.descriptor
        lines = self._pkginfo_lines(arch)
        lines.insert(1, f"pkgbase = {d.name}")
        lines.insert(2, f"pkgver = {d.full_version}")
        lines += [f"depend = {dep}" for dep in d.depends]
        lines += [f"makedepend = {dep}" for dep in d.makedepends]
        return "\n".join(lines) + "\n"

    def _write_artifact(self, artifact: str, arch: str):
        self._write_tarball(artifact, self.pkginfo(arch), "w:xz")

    def extract(self, artifact: str, staging: str):
        self._extract_tarball(artifact, staging)


PACKERS = {
    "apk": ApkPacker,
    "apt": DebPacker,
    "pacman": PacmanPacker,
    "yum": RpmPacker,
    "zypper": RpmPacker,
}


def get_packer(descriptor: PackageDescriptor, distro: str, shell: Optional[Shell] = None) -> Packer:
    """Static dispatch: distro -> package manager -> packer class."""
    manager = package_manager_for(distro)
    return PACKERS[manager](descriptor, manager, shell=shell)
