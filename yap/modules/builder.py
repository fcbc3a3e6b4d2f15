# yap/modules/builder.py
from __future__ import annotations
import os
from typing import Dict, Optional

from yap.modules import logger as _logger
from yap.modules import sources as _sources
from yap.modules.descriptor import PackageDescriptor
from yap.modules.errors import BuildStageError, CommandError, SourceError
from yap.modules.shell import Shell

STAGES = ("prepare", "build", "package")


class Builder:
    """
    Runs the prepare/build/package stages of one recipe.

    compile() creates src/, retrieves the sources and, unless dry_run is set,
    executes each non-empty stage body with the usual makepkg-style variables
    (pkgname, pkgver, pkgrel, pkgdir, srcdir, startdir, CARCH) exported.
    """

    def __init__(self, shell: Optional[Shell] = None):
        self.shell = shell or Shell()

    def compile(self, descriptor: PackageDescriptor, dry_run: bool = False):
        log = _logger.Logger(descriptor.name)

        try:
            os.makedirs(descriptor.src_dir, exist_ok=True)
            os.makedirs(descriptor.pkg_dir, exist_ok=True)
        except OSError as e:
            raise BuildStageError("failed to initialize directories", package=descriptor.name,
                                  stage="init", cause=e) from e

        log.info("Retrieving sources", pkgver=descriptor.version, pkgrel=descriptor.release)
        try:
            _sources.fetch_all(descriptor)
        except SourceError as e:
            raise BuildStageError("failed to retrieve sources", package=descriptor.name,
                                  stage="sources", cause=e) from e

        if dry_run:
            return

        for stage in STAGES:
            self._run_stage(descriptor, stage, log)

    def _run_stage(self, descriptor: PackageDescriptor, stage: str, log: _logger.Logger):
        body = getattr(descriptor, stage)
        if not body or not body.strip():
            return
        log.info(f"Running {stage}()", pkgver=descriptor.version, pkgrel=descriptor.release)
        try:
            self.shell.run_script(body, descriptor.name, cwd=descriptor.src_dir,
                                  env=self.environment(descriptor))
        except CommandError as e:
            raise BuildStageError("build stage failed", package=descriptor.name,
                                  stage=stage, cause=e) from e

    @staticmethod
    def environment(descriptor: PackageDescriptor) -> Dict[str, str]:
        env = os.environ.copy()
        env.update({
            "pkgname": descriptor.name,
            "pkgver": descriptor.version,
            "pkgrel": descriptor.release,
            "epoch": descriptor.epoch,
            "pkgdir": descriptor.pkg_dir,
            "srcdir": descriptor.src_dir,
            "startdir": descriptor.start_dir,
            "CARCH": descriptor.effective_arch(),
        })
        if descriptor.is_cross:
            env["TARGET_ARCH"] = descriptor.target_arch
        return env
