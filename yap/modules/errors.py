# yap/modules/errors.py
"""
Error taxonomy shared by every yap module.

Each error names the offending package (and stage, when there is one) and
carries the process exit code the CLI maps it to. Nothing here is retried:
the first error raised inside a run ends that run.
"""

from typing import Dict, Optional


class YapError(Exception):
    exit_code = 1

    def __init__(self, message: str, package: Optional[str] = None,
                 stage: Optional[str] = None, cause: Optional[BaseException] = None):
        self.message = message
        self.package = package
        self.stage = stage
        self.cause = cause
        super().__init__(self._render())

    def _render(self) -> str:
        text = self.message
        if self.package:
            text = f"{text} [package: {self.package}]"
        if self.stage:
            text = f"{text} [stage: {self.stage}]"
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text


class ProjectError(YapError):
    pass


class RecipeError(YapError):
    pass


class SourceError(YapError):
    pass


class CommandError(YapError):
    def __init__(self, message: str, returncode: int = 1, output: str = "", **kwargs):
        self.returncode = returncode
        self.output = output
        super().__init__(message, **kwargs)


class RangeError(YapError):
    exit_code = 2


class PackageNotFoundError(RangeError):
    def __init__(self, name: str):
        super().__init__("package not found", package=name)


class InvalidRangeError(RangeError):
    def __init__(self, from_pkg: str, to_pkg: str):
        self.from_pkg = from_pkg
        self.to_pkg = to_pkg
        super().__init__(f"invalid package order: {from_pkg} should be built before {to_pkg}")


class CircularDependencyError(YapError):
    exit_code = 3

    def __init__(self, remaining: Dict[str, int]):
        self.remaining = dict(remaining)
        stuck = ", ".join(f"{name}({degree})" for name, degree in sorted(self.remaining.items()))
        super().__init__(f"circular dependency detected: {stuck}")


class BuildStageError(YapError):
    exit_code = 4


class PackagingError(YapError):
    exit_code = 5


class InstallError(YapError):
    exit_code = 6
