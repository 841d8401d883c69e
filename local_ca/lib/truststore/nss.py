"""NSS trust store: Firefox profiles and the shared Chrome/Chromium database."""

from dataclasses import dataclass
from pathlib import Path

from ..command_runner import CommandResult, Executor
from ..errors import (
    InstallVerificationWarning,
    NoCertutilWarning,
    NoNSSDatabaseWarning,
    Op,
    TrustStoreWarning,
)
from ..models import BackendResult, RootCA, Status
from .base import TrustStore

HOMEBREW_CERTUTIL = "/usr/local/opt/nss/bin/certutil"

FIREFOX_INSTALL_PATHS = (
    "/usr/bin/firefox",
    "/usr/bin/firefox-nightly",
    "/usr/bin/firefox-developer-edition",
    "/snap/firefox",
    "/Applications/Firefox.app",
    "/Applications/FirefoxDeveloperEdition.app",
    "/Applications/Firefox Developer Edition.app",
    "/Applications/Firefox Nightly.app",
    "C:\\Program Files\\Mozilla Firefox",
)

# Marker file -> database prefix understood by certutil -d
PROFILE_MARKERS = (("cert9.db", "sql"), ("cert8.db", "dbm"))

READ_ONLY_MARKER = "SEC_ERROR_READ_ONLY"


def nss_browsers(platform: str) -> str:
    if platform.startswith("linux"):
        return "Firefox and/or Chrome/Chromium"
    return "Firefox"


@dataclass(frozen=True)
class NSSProfile:
    """A certificate database directory and its format prefix."""

    path: str
    prefix: str

    @property
    def address(self) -> str:
        return f"{self.prefix}:{self.path}"


@dataclass(frozen=True)
class NSSState:
    has_nss: bool
    certutil_path: str | None
    install_hint: str
    browsers: str
    database_dirs: tuple[str, ...]
    profile_globs: tuple[str, ...]


class NSSStore(TrustStore):
    """Checks, installs and removes the CA in every NSS database found."""

    name = "nss"

    def _database_dirs(self) -> tuple[str, ...]:
        home = self.settings.home
        return (
            str(home / ".pki" / "nssdb"),
            str(home / "snap" / "chromium" / "current" / ".pki" / "nssdb"),
            "/etc/pki/nssdb",
        )

    def _profile_globs(self) -> tuple[str, ...]:
        home = self.settings.home
        platform = self.settings.platform
        if platform == "darwin":
            return (str(home / "Library" / "Application Support" / "Firefox" / "Profiles" / "*"),)
        if platform == "win32":
            return (str(home / "AppData" / "Roaming" / "Mozilla" / "Firefox" / "Profiles" / "*"),)
        return (
            str(home / ".mozilla" / "firefox" / "*"),
            str(home / "snap" / "firefox" / "common" / ".mozilla" / "firefox" / "*"),
        )

    def _find_certutil(self) -> str | None:
        probe = self.context.probe
        platform = self.settings.platform
        if platform == "darwin":
            if path := probe.which("certutil"):
                return path
            # Default Homebrew location, saves running brew
            if probe.path_exists(HOMEBREW_CERTUTIL):
                return HOMEBREW_CERTUTIL
            if probe.which("brew"):
                result = self.context.executor.run(["brew", "--prefix", "nss"])
                if result.ok:
                    candidate = str(Path(result.output.decode().strip()) / "bin" / "certutil")
                    if probe.path_exists(candidate):
                        return candidate
            return None
        if platform.startswith("linux"):
            return probe.which("certutil")
        return None

    def _install_hint(self) -> str:
        probe = self.context.probe
        if self.settings.platform == "darwin":
            return "brew install nss"
        for manager, hint in (
            ("apt", "apt install libnss3-tools"),
            ("yum", "yum install nss-tools"),
            ("zypper", "zypper install mozilla-nss-tools"),
        ):
            if probe.which(manager):
                return hint
        return ""

    def _discover(self) -> NSSState:
        database_dirs = self._database_dirs()
        has_nss = any(self.context.probe.path_exists(p) for p in (*database_dirs, *FIREFOX_INSTALL_PATHS))
        return NSSState(
            has_nss=has_nss,
            certutil_path=self._find_certutil(),
            install_hint=self._install_hint(),
            browsers=nss_browsers(self.settings.platform),
            database_dirs=database_dirs,
            profile_globs=self._profile_globs(),
        )

    def applicable(self) -> bool:
        return self.state().has_nss

    @property
    def browsers(self) -> str:
        return self.state().browsers

    def profiles(self) -> list[NSSProfile]:
        """Discover NSS databases. Recomputed on every call."""
        state = self.state()
        probe = self.context.probe
        candidates = list(state.database_dirs)
        for pattern in state.profile_globs:
            candidates.extend(probe.glob(pattern))

        profiles = []
        for candidate in candidates:
            if not probe.is_dir(candidate):
                continue
            for marker, prefix in PROFILE_MARKERS:
                if probe.path_exists(Path(candidate) / marker):
                    profiles.append(NSSProfile(path=candidate, prefix=prefix))
                    break
        return profiles

    def _no_certutil(self, op: Op) -> NoCertutilWarning:
        state = self.state()
        return NoCertutilWarning(
            backend=self.name,
            op=op,
            message=f'"certutil" is not available, so the CA can\'t be automatically managed in {state.browsers}',
            hint=state.install_hint,
            browsers=state.browsers,
        )

    def _verify(self, profile: NSSProfile, ca: RootCA) -> bool:
        certutil = self.state().certutil_path
        result = self.context.executor.run(
            [certutil, "-V", "-d", profile.address, "-u", "L", "-n", ca.unique_name]
        )
        return result.ok

    def _run_certutil(self, op: Op, warnings: list[TrustStoreWarning], args: list[str]) -> CommandResult:
        """Run certutil, retrying as root when the database is read-only."""
        argv = [self.state().certutil_path, *args]
        result = self.context.executor.run(argv)
        if not result.ok and result.contains(READ_ONLY_MARKER) and self.settings.platform != "win32":
            result = self.run_privileged(op, warnings, argv)
        return result

    def check(self, ca: RootCA) -> BackendResult:
        if not self.state().certutil_path:
            return self.result(Op.CHECK, Status.NOT_INSTALLED, [self._no_certutil(Op.CHECK)])
        profiles = self.profiles()
        if profiles and all(self._verify(profile, ca) for profile in profiles):
            return self.result(Op.CHECK, Status.INSTALLED)
        return self.result(Op.CHECK, Status.NOT_INSTALLED)

    def install(self, ca: RootCA) -> BackendResult:
        state = self.state()
        if not state.certutil_path:
            return self.result(Op.INSTALL, Status.NOT_INSTALLED, [self._no_certutil(Op.INSTALL)])

        profiles = self.profiles()
        if not profiles:
            warning = NoNSSDatabaseWarning(
                backend=self.name,
                op=Op.INSTALL,
                message=f"no {state.browsers} security databases found",
                browsers=state.browsers,
            )
            return self.result(Op.INSTALL, Status.NOT_INSTALLED, [warning])

        warnings: list[TrustStoreWarning] = []
        for profile in profiles:
            args = ["-A", "-d", profile.address, "-t", "C,,", "-n", ca.unique_name, "-i", str(ca.cert_path)]
            result = self._run_certutil(Op.INSTALL, warnings, args)
            Executor.require_success(result, f"certutil -A -d {profile.address}")

        if not self.check(ca).trusted:
            warnings.append(
                InstallVerificationWarning(
                    backend=self.name,
                    op=Op.INSTALL,
                    message=f"Installing in {state.browsers} failed",
                    hint=f"Note that if you never started {state.browsers}, you need to do that at least once.",
                    browsers=state.browsers,
                )
            )
            return self.result(Op.INSTALL, Status.NOT_INSTALLED, warnings)
        return self.result(Op.INSTALL, Status.INSTALLED, warnings)

    def uninstall(self, ca: RootCA) -> BackendResult:
        if not self.state().certutil_path:
            return self.result(Op.UNINSTALL, Status.SKIPPED, [self._no_certutil(Op.UNINSTALL)])

        warnings: list[TrustStoreWarning] = []
        for profile in self.profiles():
            if not self._verify(profile, ca):
                continue
            result = self._run_certutil(Op.UNINSTALL, warnings, ["-D", "-d", profile.address, "-n", ca.unique_name])
            Executor.require_success(result, f"certutil -D -d {profile.address}")
        return self.result(Op.UNINSTALL, Status.UNINSTALLED, warnings)
