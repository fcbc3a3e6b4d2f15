# yap/modules/shell.py
import os
import subprocess
import shlex
import time
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

from yap.modules import logger
from yap.modules.errors import CommandError

Command = Union[str, Sequence[str]]


class CommandResult:
    """Outcome of one executed command"""

    def __init__(self, command, returncode, stdout, stderr, duration):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.duration = duration
        self.timestamp = datetime.now().isoformat()

    def ok(self):
        return self.returncode == 0


def _display(command: Command) -> str:
    if isinstance(command, str):
        return command
    return " ".join(shlex.quote(str(c)) for c in command)


class Shell:
    """
    Runs external commands for builders and packers.
      - argv commands with captured output (package managers, dpkg-deb, rpmbuild)
      - pipelines (rpm2cpio | cpio)
      - stage scripts streamed line by line with the package name as prefix
      - dry-run mode that only logs
    """

    def __init__(self, dry_run: bool = False, use_sudo: bool = False):
        self.dry_run = dry_run
        self.use_sudo = use_sudo
        self.log = logger.Logger("shell")

    def _privileged(self, command: List[str]) -> List[str]:
        if self.use_sudo and os.geteuid() != 0:
            return ["sudo"] + command
        return command

    # -------------------------------
    # argv commands
    # -------------------------------
    def run(self, command: Command, cwd: Optional[str] = None, env: Optional[Dict[str, str]] = None,
            check: bool = True, privileged: bool = False) -> CommandResult:
        if isinstance(command, str):
            command = shlex.split(command)
        command = [str(c) for c in command]
        if privileged:
            command = self._privileged(command)

        self.log.debug(f"Running: {_display(command)}", cwd=cwd or os.getcwd())

        if self.dry_run:
            return CommandResult(command, 0, "[dry-run]", "", 0)

        start = time.time()
        try:
            proc = subprocess.run(
                command,
                cwd=cwd,
                env=env or os.environ.copy(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise CommandError(f"cannot execute {command[0]}", returncode=127, cause=e) from e
        result = CommandResult(command, proc.returncode, proc.stdout, proc.stderr, time.time() - start)
        self._process_result(result, check)
        return result

    # -------------------------------
    # Pipelines
    # -------------------------------
    def run_pipeline(self, commands: List[List[str]], cwd: Optional[str] = None,
                     env: Optional[Dict[str, str]] = None) -> CommandResult:
        """Chain commands like a shell pipeline: [cmd1, cmd2, ...]"""
        self.log.debug(f"Running pipeline: {' | '.join(_display(c) for c in commands)}")

        if self.dry_run:
            return CommandResult(commands, 0, "[dry-run pipeline]", "", 0)

        start = time.time()
        procs = []
        prev_stdout = None
        for cmd in commands:
            p = subprocess.Popen(
                [str(c) for c in cmd],
                cwd=cwd,
                env=env or os.environ.copy(),
                stdin=prev_stdout,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
            if prev_stdout:
                prev_stdout.close()
            prev_stdout = p.stdout
            procs.append(p)

        stdout, stderr = procs[-1].communicate()
        returncode = 0
        for p in procs:
            p.wait()
            returncode = returncode or p.returncode
        result = CommandResult(commands, returncode, stdout, stderr, time.time() - start)
        self._process_result(result, check=True)
        return result

    # -------------------------------
    # Stage scripts
    # -------------------------------
    def run_script(self, script: str, package: str, cwd: Optional[str] = None,
                   env: Optional[Dict[str, str]] = None) -> CommandResult:
        """
        Run a stage body through ``bash -e -x``. Output is logged line by line
        under the package's name so parallel builds stay readable.
        """
        pkg_log = logger.Logger(package)
        command = ["bash", "-e", "-x", "-c", script]

        if self.dry_run:
            pkg_log.info("[dry-run] stage script not executed")
            return CommandResult(command, 0, "[dry-run]", "", 0)

        start = time.time()
        lines = []
        try:
            proc = subprocess.Popen(
                command,
                cwd=cwd,
                env=env or os.environ.copy(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise CommandError("cannot execute bash", returncode=127, package=package, cause=e) from e

        for line in proc.stdout:
            line = line.rstrip("\n")
            lines.append(line)
            pkg_log.info(line)
        proc.wait()
        output = "\n".join(lines)
        result = CommandResult(command, proc.returncode, output, "", time.time() - start)
        if not result.ok():
            raise CommandError(f"script exited with status {result.returncode}",
                               returncode=result.returncode, output=output, package=package)
        return result

    def _process_result(self, result: CommandResult, check: bool):
        if result.returncode != 0 and check:
            self.log.error(f"Command failed: {_display(result.command)}", returncode=result.returncode)
            raise CommandError(f"command {_display(result.command)} exited with status {result.returncode}",
                               returncode=result.returncode, output=(result.stderr or result.stdout or "").strip())

