"""Test fixtures for local_ca tests."""

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

from local_ca.lib.ca_manager import CAManager
from local_ca.lib.command_runner import CommandResult, Executor, PrivilegeStrategy, RootPassthrough
from local_ca.lib.config import CAConfig, Settings
from local_ca.lib.fs_probe import FilesystemProbe
from local_ca.lib.models import RootCA
from local_ca.lib.truststore.base import TrustContext

Responder = Callable[[list[str]], tuple[int, bytes]]


class FakeExecutor(Executor):
    """Executor that records commands and answers them from a responder.

    The responder maps argv to (returncode, output); by default every
    command succeeds with no output.
    """

    def __init__(self, responder: Responder | None = None, privilege: PrivilegeStrategy | None = None) -> None:
        super().__init__(privilege or RootPassthrough())
        self.responder = responder or (lambda argv: (0, b""))
        self.calls: list[list[str]] = []
        self.inputs: list[bytes | None] = []
        self.envs: list[Mapping[str, str] | None] = []

    def run(
        self,
        args: Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: str | Path | None = None,
        input: bytes | None = None,
    ) -> CommandResult:
        argv = [str(arg) for arg in args]
        self.calls.append(argv)
        self.inputs.append(input)
        self.envs.append(env)
        returncode, output = self.responder(argv)
        return CommandResult(args=argv, returncode=returncode, output=output)

    def commands(self, tool: str) -> list[list[str]]:
        """Return recorded calls whose argv contains tool."""
        return [argv for argv in self.calls if any(arg == tool or arg.endswith(f"/{tool}") for arg in argv)]


class FakeProbe(FilesystemProbe):
    """Filesystem probe answering from in-memory sets."""

    def __init__(
        self,
        paths: set[str] | None = None,
        dirs: set[str] | None = None,
        binaries: dict[str, str] | None = None,
        globs: dict[str, list[str]] | None = None,
    ) -> None:
        self.paths = set(paths or ())
        self.dirs = set(dirs or ())
        self.binaries = dict(binaries or {})
        self.globs = dict(globs or {})

    def path_exists(self, path: str | Path) -> bool:
        return str(path) in self.paths or str(path) in self.dirs

    def is_dir(self, path: str | Path) -> bool:
        return str(path) in self.dirs

    def which(self, name: str) -> str | None:
        return self.binaries.get(name)

    def glob(self, pattern: str) -> list[str]:
        return sorted(self.globs.get(pattern, []))


@pytest.fixture
def ca_config() -> CAConfig:
    """Return test CA configuration with smaller keys and a fixed identity."""
    return CAConfig(
        user_and_hostname="tester@testhost",
        root_key_size=2048,  # Faster for tests
        leaf_key_size=2048,
    )


@pytest.fixture
def ca_manager(ca_config: CAConfig) -> CAManager:
    return CAManager(ca_config)


@pytest.fixture
def caroot(tmp_path: Path) -> Path:
    """Return a CAROOT location that does not exist yet."""
    return tmp_path / "caroot"


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def root_ca(ca_manager: CAManager, caroot: Path) -> RootCA:
    """Create a root CA on disk in the temporary CAROOT."""
    ca, _ = ca_manager.load_or_create(caroot)
    return ca


@pytest.fixture
def linux_settings(caroot: Path, home: Path) -> Settings:
    return Settings(caroot=caroot, home=home, platform="linux")


@pytest.fixture
def make_executor() -> type[FakeExecutor]:
    """Return the scripted executor class, for tests that need a responder."""
    return FakeExecutor


@pytest.fixture
def make_probe() -> type[FakeProbe]:
    return FakeProbe


@pytest.fixture
def make_context() -> Callable[..., TrustContext]:
    """Return a factory building a TrustContext from fakes."""

    def _make(
        settings: Settings,
        executor: Executor | None = None,
        probe: FilesystemProbe | None = None,
    ) -> TrustContext:
        return TrustContext(
            settings=settings,
            executor=executor or FakeExecutor(),
            probe=probe or FakeProbe(),
        )

    return _make
