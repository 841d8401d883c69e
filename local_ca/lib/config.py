"""CA configuration and runtime settings dataclasses."""

import getpass
import os
import socket
import sys
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509
from cryptography.x509 import oid

from .errors import StorageError

TRUST_STORE_NAMES = ("system", "nss", "java")


def _default_user_and_hostname() -> str:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


@dataclass
class CAConfig:
    """Subject labels, validity periods and key sizes for the local CA."""

    root_organization: str = "local-ca development CA"
    leaf_organization: str = "local-ca development certificate"
    user_and_hostname: str = field(default_factory=_default_user_and_hostname)
    root_validity_years: int = 10
    leaf_validity_days: int = 825
    root_key_size: int = 3072
    leaf_key_size: int = 2048


@dataclass
class DistinguishedName:
    """X.509 Subject Distinguished Name."""

    organization: str
    organizational_unit: str
    common_name: str | None = None

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        attributes = [
            x509.NameAttribute(oid.NameOID.ORGANIZATION_NAME, self.organization),
            x509.NameAttribute(oid.NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
        ]
        if self.common_name:
            attributes.append(x509.NameAttribute(oid.NameOID.COMMON_NAME, self.common_name))
        return x509.Name(attributes)


def parse_trust_stores(value: str | None) -> frozenset[str] | None:
    """Parse the TRUST_STORES allow-list. None means every store is enabled."""
    if not value:
        return None
    return frozenset(name.strip() for name in value.split(",") if name.strip())


def resolve_caroot(env: dict[str, str], platform: str) -> Path:
    """Return the CA storage location for the given environment.

    Raises:
        StorageError: If no conventional location can be derived
    """
    if env.get("CAROOT"):
        return Path(env["CAROOT"])

    if platform == "win32":
        base = env.get("LocalAppData", "")
    elif env.get("XDG_DATA_HOME"):
        base = env["XDG_DATA_HOME"]
    elif platform == "darwin":
        base = str(Path(env["HOME"]) / "Library" / "Application Support") if env.get("HOME") else ""
    else:
        base = str(Path(env["HOME"]) / ".local" / "share") if env.get("HOME") else ""

    if not base:
        raise StorageError("failed to find the default CA location, set one as the CAROOT env var")
    return Path(base) / "local-ca"


@dataclass(frozen=True)
class Settings:
    """Environment-derived inputs for one run."""

    caroot: Path
    home: Path
    java_home: Path | None = None
    trust_stores: frozenset[str] | None = None
    platform: str = sys.platform

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None, platform: str | None = None) -> "Settings":
        """Build settings from environment variables (defaults to os.environ)."""
        env = dict(os.environ if env is None else env)
        platform = platform or sys.platform
        home = env.get("HOME") or env.get("USERPROFILE")
        if not home:
            raise StorageError("can't get user's home directory, set HOME")
        java_home = env.get("JAVA_HOME")
        return cls(
            caroot=resolve_caroot(env, platform),
            home=Path(home),
            java_home=Path(java_home) if java_home else None,
            trust_stores=parse_trust_stores(env.get("TRUST_STORES")),
            platform=platform,
        )

    def store_enabled(self, name: str) -> bool:
        """Return True if the named trust store is in the allow-list."""
        return self.trust_stores is None or name in self.trust_stores
