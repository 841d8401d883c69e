"""Trust store capability interface and the per-run context shared by backends."""

import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from ..command_runner import CommandResult, Executor
from ..config import Settings
from ..errors import NoSudoWarning, Op, TrustStoreWarning
from ..fs_probe import FilesystemProbe
from ..models import BackendResult, RootCA, Status

_UNSET = object()

NO_SUDO_MESSAGE = (
    '"sudo" is not available, and local-ca is not running as root. '
    "The (un)install operation might fail."
)


@dataclass(frozen=True)
class TrustContext:
    """Everything a backend needs from the outside world, built once per run."""

    settings: Settings
    executor: Executor
    probe: FilesystemProbe

    @classmethod
    def from_settings(cls, settings: Settings) -> "TrustContext":
        probe = FilesystemProbe()
        return cls(settings=settings, executor=Executor.create(probe), probe=probe)


class TrustStore(ABC):
    """A trust store the root CA can be checked against, installed in and removed from.

    Discovery (tool paths, database locations) runs at most once per
    instance; concurrent first callers block until it has finished.
    """

    name: str = ""

    def __init__(self, context: TrustContext) -> None:
        self.context = context
        self._state_lock = threading.Lock()
        self._state: Any = _UNSET

    @property
    def settings(self) -> Settings:
        return self.context.settings

    def state(self) -> Any:
        """Return the memoized discovery result."""
        with self._state_lock:
            if self._state is _UNSET:
                self._state = self._discover()
            return self._state

    @abstractmethod
    def _discover(self) -> Any:
        """Probe the host for this store's tooling and locations."""

    def applicable(self) -> bool:
        """Return False when this store does not exist on the host at all."""
        return True

    @abstractmethod
    def check(self, ca: RootCA) -> BackendResult:
        """Report whether ca is trusted. Never mutates the store."""

    def check_before_install(self, ca: RootCA) -> BackendResult:
        """Check used by install to skip stores that already trust ca."""
        return self.check(ca)

    @abstractmethod
    def install(self, ca: RootCA) -> BackendResult:
        """Add ca to the store."""

    @abstractmethod
    def uninstall(self, ca: RootCA) -> BackendResult:
        """Remove ca from the store."""

    def result(self, op: Op, status: Status, warnings: list[TrustStoreWarning] | None = None) -> BackendResult:
        return BackendResult(backend=self.name, op=op, status=status, warnings=list(warnings or []))

    def run_privileged(
        self,
        op: Op,
        warnings: list[TrustStoreWarning],
        args: Sequence[str],
        env: Mapping[str, str] | None = None,
        input: bytes | None = None,
    ) -> CommandResult:
        """Run a command as root, recording a warning if escalation is unavailable."""
        result = self.context.executor.run_privileged(args, env=env, input=input)
        if result.escalation_unavailable:
            warnings.append(NoSudoWarning(backend=self.name, op=op, message=NO_SUDO_MESSAGE))
        return result
