"""Command execution port with optional privilege escalation."""

import os
import shlex
import subprocess
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from .errors import CommandFailedError
from .fs_probe import FilesystemProbe
from .logging_config import LOGGER


@dataclass
class CommandResult:
    """Exit status and combined stdout+stderr of a finished command.

    escalation_unavailable is set on the first privileged command of a run
    that had to execute without root or sudo.
    """

    args: list[str]
    returncode: int
    output: bytes
    escalation_unavailable: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def contains(self, marker: str) -> bool:
        return marker.encode() in self.output


class PrivilegeStrategy(ABC):
    """How commands that need root are launched."""

    @abstractmethod
    def wrap(self, args: list[str]) -> list[str]:
        """Return the argv that runs args with elevated privileges."""

    def take_warning(self) -> bool:
        """Return True if the caller must warn that escalation is missing."""
        return False


class RootPassthrough(PrivilegeStrategy):
    """Already running as root: commands run unchanged."""

    def wrap(self, args: list[str]) -> list[str]:
        return list(args)


class SudoEscalation(PrivilegeStrategy):
    """Prefix commands with sudo."""

    def __init__(self, sudo_path: str) -> None:
        self.sudo_path = sudo_path

    def wrap(self, args: list[str]) -> list[str]:
        return [self.sudo_path, "--prompt=Sudo password:", "--", *args]


class NoEscalation(PrivilegeStrategy):
    """No way to escalate: run directly and warn once per run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._warned = False

    def wrap(self, args: list[str]) -> list[str]:
        return list(args)

    def take_warning(self) -> bool:
        with self._lock:
            if self._warned:
                return False
            self._warned = True
            return True


def select_privilege_strategy(probe: FilesystemProbe) -> PrivilegeStrategy:
    """Pick the escalation strategy for this process."""
    geteuid = getattr(os, "geteuid", None)
    if geteuid is not None and geteuid() == 0:
        return RootPassthrough()
    sudo_path = probe.which("sudo")
    if sudo_path:
        return SudoEscalation(sudo_path)
    return NoEscalation()


class Executor:
    """Runs external tools to completion and captures their output."""

    def __init__(self, privilege: PrivilegeStrategy) -> None:
        self.privilege = privilege

    @classmethod
    def create(cls, probe: FilesystemProbe) -> "Executor":
        return cls(select_privilege_strategy(probe))

    def run(
        self,
        args: Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: str | Path | None = None,
        input: bytes | None = None,
    ) -> CommandResult:
        """Run a command and return its combined output.

        A nonzero exit status is returned, not raised: callers decide which
        failures they recognise.

        Raises:
            CommandFailedError: If the executable cannot be started
        """
        argv = [str(arg) for arg in args]
        LOGGER.debug("Running %s", shlex.join(argv))
        try:
            completed = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=dict(env) if env is not None else None,
                cwd=cwd,
                input=input,
                check=False,
            )
        except OSError as e:
            raise CommandFailedError(shlex.join(argv), None, str(e).encode()) from e
        return CommandResult(args=argv, returncode=completed.returncode, output=completed.stdout)

    def run_privileged(
        self,
        args: Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: str | Path | None = None,
        input: bytes | None = None,
    ) -> CommandResult:
        """Run a command as root using the configured strategy."""
        warn = self.privilege.take_warning()
        result = self.run(self.privilege.wrap([str(arg) for arg in args]), env=env, cwd=cwd, input=input)
        result.escalation_unavailable = warn
        return result

    @staticmethod
    def require_success(result: CommandResult, label: str) -> CommandResult:
        """Raise CommandFailedError unless the command exited with status 0."""
        if not result.ok:
            raise CommandFailedError(label, result.returncode, result.output)
        return result
