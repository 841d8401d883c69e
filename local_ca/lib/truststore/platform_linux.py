"""System trust store on Linux: a distribution CA anchor directory plus a refresh command."""

import ssl
import threading
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from ..command_runner import Executor
from ..errors import Op, StorageError, TrustStoreWarning, UnsupportedPlatformWarning
from ..models import BackendResult, RootCA, Status
from .base import TrustContext, TrustStore
from .nss import nss_browsers

LEGACY_ANCHOR_NAME = "local-ca-rootCA"


@dataclass(frozen=True)
class SystemTrustTarget:
    """Where a distribution family keeps local CA anchors and how it rebuilds its bundle."""

    anchor_dir: str
    filename_pattern: str
    refresh_command: tuple[str, ...]

    def anchor_path(self, name: str) -> str:
        return self.filename_pattern % name


SYSTEM_TRUST_TARGETS = (
    SystemTrustTarget(
        "/etc/pki/ca-trust/source/anchors/",
        "/etc/pki/ca-trust/source/anchors/%s.pem",
        ("update-ca-trust", "extract"),
    ),
    SystemTrustTarget(
        "/usr/local/share/ca-certificates/",
        "/usr/local/share/ca-certificates/%s.crt",
        ("update-ca-certificates",),
    ),
    SystemTrustTarget(
        "/etc/ca-certificates/trust-source/anchors/",
        "/etc/ca-certificates/trust-source/anchors/%s.crt",
        ("trust", "extract-compat"),
    ),
    SystemTrustTarget(
        "/usr/share/pki/trust/anchors",
        "/usr/share/pki/trust/anchors/%s.pem",
        ("update-ca-certificates",),
    ),
)


def _load_pem_certificates(path: Path) -> list[x509.Certificate]:
    try:
        return x509.load_pem_x509_certificates(path.read_bytes())
    except (OSError, ValueError):
        return []


def load_default_trust_roots() -> frozenset[str]:
    """Return SHA-256 fingerprints of the roots OpenSSL trusts by default."""
    paths = ssl.get_default_verify_paths()
    certificates: list[x509.Certificate] = []
    for cafile in {paths.cafile, paths.openssl_cafile}:
        if cafile and Path(cafile).is_file():
            certificates.extend(_load_pem_certificates(Path(cafile)))
    for capath in {paths.capath, paths.openssl_capath}:
        if capath and Path(capath).is_dir():
            for entry in sorted(Path(capath).iterdir()):
                if entry.is_file():
                    certificates.extend(_load_pem_certificates(entry))
    return frozenset(cert.fingerprint(hashes.SHA256()).hex() for cert in certificates)


class LinuxSystemStore(TrustStore):
    """Installs the CA as an anchor file and refreshes the system bundle.

    check() compares against the trust roots as they were when first read
    in this process; installs and uninstalls performed by this process are
    remembered instead of being re-read.
    """

    name = "system"

    def __init__(self, context: TrustContext) -> None:
        super().__init__(context)
        self._roots_lock = threading.Lock()
        self._roots: frozenset[str] | None = None
        self._changed_this_run: bool | None = None

    def _discover(self) -> SystemTrustTarget | None:
        for target in SYSTEM_TRUST_TARGETS:
            if self.context.probe.path_exists(target.anchor_dir):
                return target
        return None

    @property
    def target(self) -> SystemTrustTarget | None:
        return self.state()

    def trust_roots(self) -> frozenset[str]:
        with self._roots_lock:
            if self._roots is None:
                self._roots = load_default_trust_roots()
            return self._roots

    def _anchor_path(self, ca: RootCA) -> str:
        return self.target.anchor_path(ca.unique_name.replace(" ", "_"))

    def _unsupported(self, op: Op, ca: RootCA) -> UnsupportedPlatformWarning:
        browsers = nss_browsers(self.settings.platform)
        return UnsupportedPlatformWarning(
            backend=self.name,
            op=op,
            message=f"Installing to the system store is not yet supported on this Linux but {browsers} will still work.",
            hint=f"You can also manually install the root certificate at {str(ca.cert_path)!r}.",
            root_ca_path=str(ca.cert_path),
            browsers=browsers,
        )

    def check(self, ca: RootCA) -> BackendResult:
        warnings = [] if self.target else [self._unsupported(Op.CHECK, ca)]
        fingerprint = ca.certificate.fingerprint(hashes.SHA256()).hex()
        trusted = self._changed_this_run
        if trusted is None:
            trusted = fingerprint in self.trust_roots()
        if trusted:
            return self.result(Op.CHECK, Status.INSTALLED, warnings)
        return self.result(Op.CHECK, Status.NOT_INSTALLED, warnings)

    def install(self, ca: RootCA) -> BackendResult:
        target = self.target
        if target is None:
            return self.result(Op.INSTALL, Status.NOT_INSTALLED, [self._unsupported(Op.INSTALL, ca)])

        try:
            cert_pem = ca.cert_path.read_bytes()
        except OSError as e:
            raise StorageError(f"failed to read root certificate: {e}") from e

        warnings: list[TrustStoreWarning] = []
        result = self.run_privileged(Op.INSTALL, warnings, ["tee", self._anchor_path(ca)], input=cert_pem)
        Executor.require_success(result, "tee")

        result = self.run_privileged(Op.INSTALL, warnings, target.refresh_command)
        Executor.require_success(result, " ".join(target.refresh_command))

        self._changed_this_run = True
        return self.result(Op.INSTALL, Status.INSTALLED, warnings)

    def uninstall(self, ca: RootCA) -> BackendResult:
        target = self.target
        if target is None:
            return self.result(Op.UNINSTALL, Status.NOT_INSTALLED, [self._unsupported(Op.UNINSTALL, ca)])

        warnings: list[TrustStoreWarning] = []
        result = self.run_privileged(Op.UNINSTALL, warnings, ["rm", "-f", self._anchor_path(ca)])
        Executor.require_success(result, "rm")

        # Older releases installed under a fixed, non-unique file name
        legacy_path = target.anchor_path(LEGACY_ANCHOR_NAME)
        if self.context.probe.path_exists(legacy_path):
            result = self.run_privileged(Op.UNINSTALL, warnings, ["rm", "-f", legacy_path])
            Executor.require_success(result, "rm (legacy filename)")

        result = self.run_privileged(Op.UNINSTALL, warnings, target.refresh_command)
        Executor.require_success(result, " ".join(target.refresh_command))

        self._changed_this_run = False
        return self.result(Op.UNINSTALL, Status.UNINSTALLED, warnings)
