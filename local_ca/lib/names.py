"""Classification of requested certificate names and output file naming."""

import ipaddress
import re
from dataclasses import dataclass
from email.utils import parseaddr
from enum import StrEnum
from urllib.parse import urlsplit

import idna
from cryptography import x509

from .errors import InvalidNameError

HOSTNAME_PATTERN = re.compile(r"^(\*\.)?[0-9a-z_-]([0-9a-z._-]*[0-9a-z_-])?$", re.IGNORECASE)


class NameKind(StrEnum):
    """Subject Alternative Name type a requested name maps to."""

    DNS = "dns"
    IP = "ip"
    EMAIL = "email"
    URI = "uri"


@dataclass(frozen=True)
class ClassifiedName:
    """A validated name. value is the punycode form for hostnames."""

    value: str
    kind: NameKind

    def to_general_name(self) -> x509.GeneralName:
        if self.kind is NameKind.IP:
            return x509.IPAddress(ipaddress.ip_address(self.value))
        if self.kind is NameKind.EMAIL:
            return x509.RFC822Name(self.value)
        if self.kind is NameKind.URI:
            return x509.UniformResourceIdentifier(self.value)
        return x509.DNSName(self.value)


def _is_ip(name: str) -> bool:
    if "%" in name:
        return False
    try:
        ipaddress.ip_address(name)
    except ValueError:
        return False
    return True


def _is_email(name: str) -> bool:
    _, address = parseaddr(name)
    if address != name or any(ch.isspace() for ch in name):
        return False
    local, sep, domain = address.rpartition("@")
    return bool(sep and local and domain)


def _is_uri(name: str) -> bool:
    try:
        parts = urlsplit(name)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


def to_ascii(name: str) -> str:
    """Convert a hostname to its IDNA (punycode) form, label by label.

    ASCII labels are kept as-is so wildcards and underscores survive.
    """
    labels = []
    for label in name.split("."):
        if label.isascii():
            labels.append(label)
        else:
            labels.append(idna.encode(label, uts46=True).decode("ascii"))
    return ".".join(labels)


def classify(name: str) -> ClassifiedName:
    """Classify a requested name as IP, email, URI or hostname.

    Raises:
        InvalidNameError: If the name fits none of the four kinds
    """
    if _is_ip(name):
        return ClassifiedName(name, NameKind.IP)
    if _is_email(name):
        return ClassifiedName(name, NameKind.EMAIL)
    if _is_uri(name):
        return ClassifiedName(name, NameKind.URI)

    try:
        punycode = to_ascii(name)
    except (idna.IDNAError, UnicodeError) as e:
        raise InvalidNameError(name, str(e)) from e
    if not HOSTNAME_PATTERN.match(punycode):
        raise InvalidNameError(name)
    return ClassifiedName(punycode, NameKind.DNS)


def classify_all(names: list[str]) -> list[ClassifiedName]:
    return [classify(name) for name in names]


def output_basename(hosts: list[str]) -> str:
    """Return the file name stem for a certificate covering hosts.

    "*.example.it" -> "_wildcard.example.it"
    ["example.com", "localhost", "::1"] -> "example.com+2"
    """
    base = hosts[0].replace(":", "_").replace("*", "_wildcard")
    if len(hosts) > 1:
        base += f"+{len(hosts) - 1}"
    return base
