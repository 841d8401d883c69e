"""Java trust store: the cacerts keystore under JAVA_HOME, edited with keytool."""

from dataclasses import dataclass
from pathlib import Path

from cryptography.hazmat.primitives import hashes

from ..cert_utils import certificate_fingerprint
from ..command_runner import CommandResult, Executor
from ..errors import CommandFailedError, NoKeytoolWarning, Op, TrustStoreWarning
from ..logging_config import LOGGER
from ..models import BackendResult, RootCA, Status
from .base import TrustStore

STORE_PASS = "changeit"
FILE_NOT_FOUND_MARKER = "java.io.FileNotFoundException"
ALIAS_MISSING_MARKER = "does not exist"


@dataclass(frozen=True)
class JavaState:
    java_home: Path | None
    keytool_path: Path | None
    cacerts_path: Path | None


class JavaStore(TrustStore):
    """Checks, installs and removes the CA in the Java keystore."""

    name = "java"

    def _discover(self) -> JavaState:
        java_home = self.settings.java_home
        if java_home is None:
            return JavaState(java_home=None, keytool_path=None, cacerts_path=None)

        probe = self.context.probe
        keytool_name = "keytool.exe" if self.settings.platform == "win32" else "keytool"
        keytool = java_home / "bin" / keytool_name

        # Distributions bundling a JRE nest the keystore one level deeper
        cacerts = None
        for candidate in (
            java_home / "jre" / "lib" / "security" / "cacerts",
            java_home / "lib" / "security" / "cacerts",
        ):
            if probe.path_exists(candidate):
                cacerts = candidate
                break

        return JavaState(
            java_home=java_home,
            keytool_path=keytool if probe.path_exists(keytool) else None,
            cacerts_path=cacerts or java_home / "lib" / "security" / "cacerts",
        )

    def applicable(self) -> bool:
        return self.state().java_home is not None

    def _no_keytool(self, op: Op) -> NoKeytoolWarning:
        action = "installed in" if op is Op.INSTALL else "uninstalled from"
        message = f"\"keytool\" is not available, so the CA can't be automatically {action} Java's trust store"
        if op is Op.UNINSTALL:
            message += " (if it was ever installed)"
        return NoKeytoolWarning(backend=self.name, op=op, message=message)

    def _exec_keytool(self, op: Op, warnings: list[TrustStoreWarning], args: list[str]) -> CommandResult:
        """Run keytool, retrying as root when the keystore is not writable."""
        state = self.state()
        argv = [str(state.keytool_path), *args]
        result = self.context.executor.run(argv)
        if not result.ok and result.contains(FILE_NOT_FOUND_MARKER) and self.settings.platform != "win32":
            result = self.run_privileged(op, warnings, argv, env={"JAVA_HOME": str(state.java_home)})
        return result

    def check(self, ca: RootCA) -> BackendResult:
        state = self.state()
        if state.keytool_path is None:
            return self.result(Op.CHECK, Status.NOT_INSTALLED)

        args = ["-list", "-keystore", str(state.cacerts_path), "-storepass", STORE_PASS]
        result = Executor.require_success(
            self.context.executor.run([str(state.keytool_path), *args]), "keytool -list"
        )

        # keytool prints colon separated upper-case hex; pre-Java 9 uses SHA-1
        listing = result.output.replace(b":", b"").decode("utf-8", errors="replace").upper()
        fingerprints = (
            certificate_fingerprint(ca.certificate, hashes.SHA1()),
            certificate_fingerprint(ca.certificate, hashes.SHA256()),
        )
        if any(fp in listing for fp in fingerprints):
            return self.result(Op.CHECK, Status.INSTALLED)
        return self.result(Op.CHECK, Status.NOT_INSTALLED)

    def check_before_install(self, ca: RootCA) -> BackendResult:
        """Like check(), but a failing listing counts as not installed.

        keytool -importcert creates the keystore when it is missing, so a
        broken or absent cacerts must not prevent the import.
        """
        try:
            return self.check(ca)
        except CommandFailedError as e:
            LOGGER.debug("Ignoring Java trust store check failure before install: %s", e)
            return self.result(Op.CHECK, Status.NOT_INSTALLED)

    def install(self, ca: RootCA) -> BackendResult:
        state = self.state()
        if state.keytool_path is None:
            return self.result(Op.INSTALL, Status.NOT_INSTALLED, [self._no_keytool(Op.INSTALL)])

        warnings: list[TrustStoreWarning] = []
        args = [
            "-importcert", "-noprompt",
            "-keystore", str(state.cacerts_path),
            "-storepass", STORE_PASS,
            "-file", str(ca.cert_path),
            "-alias", ca.unique_name,
        ]  # fmt: skip
        Executor.require_success(self._exec_keytool(Op.INSTALL, warnings, args), "keytool -importcert")
        return self.result(Op.INSTALL, Status.INSTALLED, warnings)

    def uninstall(self, ca: RootCA) -> BackendResult:
        state = self.state()
        if state.keytool_path is None:
            return self.result(Op.UNINSTALL, Status.SKIPPED, [self._no_keytool(Op.UNINSTALL)])

        warnings: list[TrustStoreWarning] = []
        args = [
            "-delete",
            "-alias", ca.unique_name,
            "-keystore", str(state.cacerts_path),
            "-storepass", STORE_PASS,
        ]  # fmt: skip
        result = self._exec_keytool(Op.UNINSTALL, warnings, args)
        if result.contains(ALIAS_MISSING_MARKER):
            return self.result(Op.UNINSTALL, Status.NOT_INSTALLED, warnings)
        Executor.require_success(result, "keytool -delete")
        return self.result(Op.UNINSTALL, Status.UNINSTALLED, warnings)
