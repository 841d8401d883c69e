"""Schema for the property list exported by `security trust-settings-export`.

    <dict>
        <key>trustList</key>
        <dict>
            <key>SHA1-OF-CERT</key>
            <dict>
                <key>issuerName</key> <data>DER RDN sequence</data>
                <key>trustSettings</key> <array>...</array>
                ...
            </dict>
        </dict>
        <key>trustVersion</key> <integer>1</integer>
    </dict>
"""

import plistlib
from dataclasses import dataclass
from typing import Any
from xml.parsers.expat import ExpatError

from ..errors import ParseError

SUPPORTED_TRUST_VERSION = 1

# 1.2.840.113635.100.1.3 (Apple SSL policy) and 1.2.840.113635.100.1.2 (X.509 basic)
SSL_SERVER_POLICY_OID = bytes.fromhex("2a864886f763640103")
BASIC_X509_POLICY_OID = bytes.fromhex("2a864886f763640102")

TRUST_RESULT_TRUST_ROOT = 1


def explicit_trust_settings() -> list[dict[str, Any]]:
    """Trust settings marking a root as trusted for TLS servers and X.509."""
    return [
        {
            "kSecTrustSettingsPolicy": SSL_SERVER_POLICY_OID,
            "kSecTrustSettingsPolicyName": "sslServer",
            "kSecTrustSettingsResult": TRUST_RESULT_TRUST_ROOT,
        },
        {
            "kSecTrustSettingsPolicy": BASIC_X509_POLICY_OID,
            "kSecTrustSettingsPolicyName": "basicX509",
            "kSecTrustSettingsResult": TRUST_RESULT_TRUST_ROOT,
        },
    ]


@dataclass
class TrustSettings:
    """Parsed admin-domain trust settings.

    Unknown keys are kept in document and written back unchanged.
    """

    trust_version: int
    trust_list: dict[str, dict[str, Any]]
    document: dict[str, Any]

    @classmethod
    def from_bytes(cls, data: bytes) -> "TrustSettings":
        """Parse an exported trust settings property list.

        Raises:
            ParseError: If the data is not a trust settings document of version 1
        """
        try:
            document = plistlib.loads(data)
        except (plistlib.InvalidFileException, ExpatError, ValueError) as e:
            raise ParseError(f"failed to parse trust settings: {e}") from e

        if not isinstance(document, dict):
            raise ParseError("failed to parse trust settings: expected a dictionary")

        version = document.get("trustVersion")
        if version != SUPPORTED_TRUST_VERSION:
            raise ParseError(f"unsupported trust settings version: {version}")

        trust_list = document.setdefault("trustList", {})
        if not isinstance(trust_list, dict):
            raise ParseError("failed to parse trust settings: trustList is not a dictionary")

        return cls(trust_version=version, trust_list=trust_list, document=document)

    def find_issuer(self, issuer_der: bytes) -> str | None:
        """Return the trust list key of the entry whose issuerName equals issuer_der."""
        for key, entry in self.trust_list.items():
            if isinstance(entry, dict) and entry.get("issuerName") == issuer_der:
                return key
        return None

    def set_explicit_trust(self, issuer_der: bytes) -> bool:
        """Make trust explicit for the entry issued by issuer_der.

        Returns:
            True if a matching entry was found and updated
        """
        key = self.find_issuer(issuer_der)
        if key is None:
            return False
        self.trust_list[key]["trustSettings"] = explicit_trust_settings()
        return True

    def to_bytes(self) -> bytes:
        return plistlib.dumps(self.document, fmt=plistlib.FMT_XML)
