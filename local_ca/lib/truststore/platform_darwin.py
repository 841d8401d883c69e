"""System trust store on macOS: the System keychain plus explicit admin trust settings."""

import os
import tempfile
from pathlib import Path

from ..cert_utils import subject_der
from ..command_runner import Executor
from ..errors import Op, StorageError, TrustStoreWarning
from ..logging_config import LOGGER
from ..models import BackendResult, RootCA, Status
from .base import TrustStore
from .trust_settings import TrustSettings

SYSTEM_KEYCHAIN = "/Library/Keychains/System.keychain"


class DarwinKeychainStore(TrustStore):
    """Adds the CA to the System keychain and marks it trusted for TLS.

    The implicit "no trust settings means trusted" default is not honoured by
    every macOS release, so install rewrites the CA's trust settings entry.
    """

    name = "system"

    def _discover(self) -> str:
        return self.context.probe.which("security") or "/usr/bin/security"

    def check(self, ca: RootCA) -> BackendResult:
        result = self.context.executor.run([self.state(), "verify-cert", "-c", str(ca.cert_path)])
        status = Status.INSTALLED if result.ok else Status.NOT_INSTALLED
        return self.result(Op.CHECK, status)

    def _security(self, op: Op, warnings: list[TrustStoreWarning], *args: str) -> None:
        result = self.run_privileged(op, warnings, [self.state(), *args])
        Executor.require_success(result, f"security {args[0]}")

    def install(self, ca: RootCA) -> BackendResult:
        warnings: list[TrustStoreWarning] = []
        self._security(Op.INSTALL, warnings, "add-trusted-cert", "-d", "-k", SYSTEM_KEYCHAIN, str(ca.cert_path))

        try:
            fd, name = tempfile.mkstemp(prefix="trust-settings")
        except OSError as e:
            raise StorageError(f"failed to create temp file: {e}") from e
        os.close(fd)
        plist_path = Path(name)
        try:
            self._security(Op.INSTALL, warnings, "trust-settings-export", "-d", str(plist_path))

            try:
                data = plist_path.read_bytes()
            except OSError as e:
                raise StorageError(f"failed to read trust settings: {e}") from e

            trust_settings = TrustSettings.from_bytes(data)
            if not trust_settings.set_explicit_trust(subject_der(ca.certificate)):
                LOGGER.debug("No trust settings entry found for %s", ca.unique_name)

            try:
                plist_path.write_bytes(trust_settings.to_bytes())
            except OSError as e:
                raise StorageError(f"failed to write trust settings: {e}") from e

            self._security(Op.INSTALL, warnings, "trust-settings-import", "-d", str(plist_path))
        finally:
            plist_path.unlink(missing_ok=True)

        return self.result(Op.INSTALL, Status.INSTALLED, warnings)

    def uninstall(self, ca: RootCA) -> BackendResult:
        warnings: list[TrustStoreWarning] = []
        self._security(Op.UNINSTALL, warnings, "remove-trusted-cert", "-d", str(ca.cert_path))
        return self.result(Op.UNINSTALL, Status.UNINSTALLED, warnings)
