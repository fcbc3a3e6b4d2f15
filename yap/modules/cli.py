# yap/modules/cli.py
"""
Command line entry point for yap.

Usage examples:
  yap build ubuntu-jammy ./suite            # build every package of ./suite
  yap build ./suite -P --from libfoo --to foo
  yap build arch ./single-recipe -c -s
  yap graph ./suite --output deps.dot
  yap prepare debian
  yap list-distros

The distribution is auto-detected from /etc/os-release when omitted.
"""

from __future__ import annotations
import argparse
import platform
import sys
import traceback
from typing import List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from yap import __version__
from yap.modules import logger as _logger
from yap.modules.config import BuildConfig, config
from yap.modules.descriptor import PackageDescriptor
from yap.modules.errors import ProjectError, YapError
from yap.modules.graph import DependencyGraph, runtime_dependency_map, topological_batches
from yap.modules.packer import DISTRO_TO_PACKAGE_MANAGER, get_packer, package_manager_for
from yap.modules.project import MultipleProject

LOG = _logger.Logger("cli")


# helpers
def split_target(target: str) -> Tuple[str, str]:
    """``ubuntu-jammy`` -> ``("ubuntu", "jammy")``; distro names may contain dashes."""
    for distro in sorted(DISTRO_TO_PACKAGE_MANAGER, key=len, reverse=True):
        if target == distro:
            return distro, ""
        if target.startswith(distro + "-"):
            return distro, target[len(distro) + 1:]
    raise ProjectError(f"unsupported linux distro: {target}")


def detect_distro() -> Tuple[str, str]:
    try:
        info = platform.freedesktop_os_release()
    except OSError as e:
        raise ProjectError("cannot detect the host distribution, pass it explicitly", cause=e) from e
    return info.get("ID", ""), info.get("VERSION_CODENAME", "")


def resolve_targets(targets: List[str]) -> Tuple[str, str, str]:
    """positional ``[distro[-codename]] path`` -> (distro, codename, path)"""
    if len(targets) == 1:
        distro, codename = detect_distro()
        return distro, codename, targets[0]
    if len(targets) == 2:
        distro, codename = split_target(targets[0])
        return distro, codename, targets[1]
    raise ProjectError("expected [distro[-codename]] path")


def make_console(no_color: bool) -> Console:
    if no_color:
        return Console(color_system=None, highlight=False)
    return Console()


class CLI:
    def __init__(self, console: Console):
        self.console = console

    # -----------------------
    # build
    # -----------------------
    def cmd_build(self, args) -> int:
        distro, codename, path = resolve_targets(args.targets)
        build_config = BuildConfig.from_args(args, config)
        mode = "parallel" if build_config.parallel else "sequential"
        self.console.print(f"[blue]Building {path} for {distro}{'-' + codename if codename else ''} "
                           f"({mode})[/blue]")

        mpc = MultipleProject(build_config)
        mpc.load(distro, codename, path)
        metrics = mpc.build_all()

        table = Table(title="Build summary")
        table.add_column("Package")
        table.add_column("Installed")
        table.add_column("Artifact")
        table.add_column("Seconds", justify="right")
        for name, rec in metrics["packages"].items():
            table.add_row(name, "yes" if rec.get("installed") else "no",
                          rec.get("artifact") or "-", str(rec.get("duration", "")))
        self.console.print(table)
        self.console.print(Panel(f"{metrics['built']} built, {metrics['installed']} installed",
                                 title="build", style="green"))
        return 0

    # -----------------------
    # graph
    # -----------------------
    def cmd_graph(self, args) -> int:
        if len(args.targets) == 2:
            distro, codename = split_target(args.targets[0])
        else:
            distro, codename = "", ""
        path = args.targets[-1]

        mpc = MultipleProject()
        mpc.read(path)
        manager = package_manager_for(distro) if distro else ""
        descriptors = mpc.descriptors_for(distro, codename, manager)
        graph = DependencyGraph(descriptors)
        popularity = graph.popularity()
        batches = topological_batches(graph, popularity)
        runtime = runtime_dependency_map(descriptors)

        table = Table(title=f"Build batches for {mpc.name or path}")
        table.add_column("Batch", justify="right")
        table.add_column("Packages")
        for index, batch in enumerate(batches, start=1):
            cells = []
            for desc in batch:
                mark = "*" if runtime.get(desc.name) else ""
                cells.append(f"{desc.name}{mark}({popularity[desc.name]})")
            table.add_row(str(index), ", ".join(cells))
        self.console.print(table)
        self.console.print("[dim]* runtime dependency of another package, (n) dependents[/dim]")

        graph.export_dot(args.output, highlight=runtime)
        return 0

    # -----------------------
    # prepare
    # -----------------------
    def cmd_prepare(self, args) -> int:
        if args.distro:
            distro, _ = split_target(args.distro)
        else:
            distro, _ = detect_distro()
        packer = get_packer(PackageDescriptor("host", "0"), distro)
        if not args.skip_sync:
            packer.update()
        packer.prepare_environment()
        self.console.print(Panel(f"Build environment ready for {distro}", title="prepare", style="green"))
        return 0

    # -----------------------
    # list-distros
    # -----------------------
    def cmd_list_distros(self, args) -> int:
        table = Table(title="Supported distributions")
        table.add_column("Distro")
        table.add_column("Package manager")
        for distro, manager in sorted(DISTRO_TO_PACKAGE_MANAGER.items()):
            table.add_row(distro, manager)
        self.console.print(table)
        return 0


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="yap", description="Build packages for multiple distributions")
    p.add_argument("--version", action="version", version=f"yap {__version__}")
    p.add_argument("--no-color", action="store_true", help="Disable colored output")
    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("build", aliases=["b"], help="Build a project set or a single recipe")
    b.add_argument("targets", nargs="+", metavar="TARGET", help="[distro[-codename]] path")
    b.add_argument("-P", "--parallel", action="store_true", help="Build in dependency-aware batches")
    b.add_argument("-c", "--cleanbuild", action="store_true", help="Remove src/ before building")
    b.add_argument("-o", "--nobuild", action="store_true", help="Fetch sources only, skip stages and packaging")
    b.add_argument("-z", "--zap", action="store_true", help="Remove each package build directory first")
    b.add_argument("-d", "--nomakedeps", action="store_true", help="Skip external make dependencies")
    b.add_argument("-s", "--skip-sync", dest="skip_sync", action="store_true",
                   help="Skip package index update and external runtime dependencies")
    b.add_argument("--from", dest="from_pkg", help="First package to build (declared order)")
    b.add_argument("--to", dest="to_pkg", help="Last package to build (declared order)")
    b.add_argument("-t", "--target-arch", dest="target_arch", help="Cross-compilation target architecture")
    b.add_argument("-j", "--jobs", type=int, help="Maximum parallel workers")
    b.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    g = sub.add_parser("graph", aliases=["g"], help="Show build batches and export a DOT graph")
    g.add_argument("targets", nargs="+", metavar="TARGET", help="[distro[-codename]] path")
    g.add_argument("--output", default="deps.dot", help="DOT output file")
    g.add_argument("-v", "--verbose", action="store_true")

    pr = sub.add_parser("prepare", help="Install the base build environment")
    pr.add_argument("distro", nargs="?")
    pr.add_argument("-s", "--skip-sync", dest="skip_sync", action="store_true")
    pr.add_argument("-v", "--verbose", action="store_true")

    sub.add_parser("list-distros", aliases=["ld"], help="List supported distributions")
    return p


COMMANDS = {
    "build": "cmd_build", "b": "cmd_build",
    "graph": "cmd_graph", "g": "cmd_graph",
    "prepare": "cmd_prepare",
    "list-distros": "cmd_list_distros", "ld": "cmd_list_distros",
}


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    args = build_argparser().parse_args(argv)
    console = make_console(args.no_color)
    if getattr(args, "verbose", False):
        _logger.Logger.set_level("debug")

    cli = CLI(console)
    try:
        return getattr(cli, COMMANDS[args.command])(args)
    except YapError as e:
        LOG.error(str(e))
        LOG.debug(traceback.format_exc())
        console.print(f"[red]{e}[/red]")
        return e.exit_code
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
