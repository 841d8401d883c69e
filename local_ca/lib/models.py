"""Result models for CA and trust store operations."""

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes

from .errors import Op, TrustStoreWarning

ROOT_CERT_NAME = "rootCA.pem"
ROOT_KEY_NAME = "rootCA-key.pem"
UNIQUE_NAME_LABEL = "local-ca development CA"


def ca_unique_name(cert: x509.Certificate) -> str:
    """Return the lookup key used for the CA in every trust store."""
    return f"{UNIQUE_NAME_LABEL} {cert.serial_number}"


@dataclass
class RootCA:
    """Root CA certificate and key as persisted in CAROOT."""

    certificate: x509.Certificate
    private_key: CertificateIssuerPrivateKeyTypes
    cert_path: Path
    key_path: Path

    @property
    def unique_name(self) -> str:
        return ca_unique_name(self.certificate)

    @property
    def file_name(self) -> str:
        return self.cert_path.name


@dataclass
class IssuedCertificate:
    """Leaf certificate issued by the root CA.

    private_key is None when the certificate was signed from an external CSR.
    """

    certificate: x509.Certificate
    private_key: CertificateIssuerPrivateKeyTypes | None
    hosts: list[str]


@dataclass
class LeafFiles:
    """Paths written for an issued certificate."""

    cert_path: Path | None = None
    key_path: Path | None = None
    p12_path: Path | None = None


class Status(StrEnum):
    """Outcome of a trust store operation."""

    INSTALLED = "installed"
    ALREADY_INSTALLED = "already_installed"
    NOT_INSTALLED = "not_installed"
    UNINSTALLED = "uninstalled"
    SKIPPED = "skipped"


class TrustState(StrEnum):
    """Aggregate trust state of a CA across the enabled stores."""

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    INSTALLED = "installed"
    PARTIALLY_INSTALLED = "partially_installed"
    UNINSTALLED = "uninstalled"


@dataclass
class BackendResult:
    """Outcome of one operation against one trust store."""

    backend: str
    op: Op
    status: Status
    warnings: list[TrustStoreWarning] = field(default_factory=list)

    @property
    def trusted(self) -> bool:
        return self.status in (Status.INSTALLED, Status.ALREADY_INSTALLED)
