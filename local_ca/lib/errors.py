"""Error and warning taxonomy for CA and trust store operations.

Fatal conditions are raised as LocalCAError subclasses and stop the run.
Warnings are returned inside BackendResult values: they degrade a single
trust store but never stop the others.
"""

from dataclasses import dataclass
from enum import StrEnum


class Op(StrEnum):
    """Trust store operation a result or warning belongs to."""

    CHECK = "check"
    INSTALL = "install"
    UNINSTALL = "uninstall"


class LocalCAError(Exception):
    """Base class for fatal errors."""


class StorageError(LocalCAError):
    """CAROOT or a CA file cannot be created, read or written."""


class ParseError(LocalCAError):
    """A certificate, key or CSR file has unexpected content."""


class MissingKeyError(ParseError):
    """The CA certificate exists but its private key does not."""


class InvalidNameError(LocalCAError):
    """A requested name is not a hostname, IP, email or URI."""

    def __init__(self, name: str, reason: str | None = None) -> None:
        self.name = name
        message = f'"{name}" is not a valid hostname, IP, URL or email'
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CSRError(LocalCAError):
    """A certificate signing request failed validation."""


class UsageError(LocalCAError):
    """Conflicting options were requested."""


class CommandFailedError(LocalCAError):
    """An external tool exited with an unexpected status."""

    def __init__(self, command: str, returncode: int | None, output: bytes = b"") -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        detail = output.decode("utf-8", errors="replace").rstrip()
        status = "not found" if returncode is None else f"exit status {returncode}"
        message = f'failed to execute "{command}": {status}'
        if detail:
            message = f"{message}\n\n{detail}\n"
        super().__init__(message)


@dataclass(frozen=True)
class TrustStoreWarning:
    """Non-fatal condition reported by a trust store backend.

    Attributes:
        backend: Store name ("system", "nss" or "java")
        op: Operation that produced the warning
        message: Human-readable description
        hint: Remediation the user can apply, if any
    """

    backend: str
    op: Op
    message: str
    hint: str = ""


@dataclass(frozen=True)
class NoCertutilWarning(TrustStoreWarning):
    """certutil is not installed, so NSS databases cannot be edited."""

    browsers: str = ""


@dataclass(frozen=True)
class NoNSSDatabaseWarning(TrustStoreWarning):
    """NSS is present but no certificate database was found."""

    browsers: str = ""


@dataclass(frozen=True)
class InstallVerificationWarning(TrustStoreWarning):
    """The CA was imported but a follow-up check did not find it."""

    browsers: str = ""


@dataclass(frozen=True)
class NoKeytoolWarning(TrustStoreWarning):
    """JAVA_HOME is set but keytool is missing from it."""


@dataclass(frozen=True)
class UnsupportedPlatformWarning(TrustStoreWarning):
    """No system trust store integration exists for this host."""

    root_ca_path: str = ""
    browsers: str = ""


@dataclass(frozen=True)
class NoSudoWarning(TrustStoreWarning):
    """Not running as root and sudo is unavailable."""

