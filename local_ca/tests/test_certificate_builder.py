"""Tests for CertificateBuilder class."""

import ipaddress
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import ExtendedKeyUsageOID

from local_ca.lib.cert_utils import generate_ec_private_key, generate_private_key
from local_ca.lib.certificate_builder import CertificateBuilder
from local_ca.lib.config import DistinguishedName
from local_ca.lib.errors import CSRError
from local_ca.lib.models import RootCA


@pytest.fixture
def root_dn() -> DistinguishedName:
    return DistinguishedName(
        organization="Test Org",
        organizational_unit="tester@testhost",
        common_name="Test Root CA",
    )


@pytest.fixture
def root_cert(root_dn: DistinguishedName) -> x509.Certificate:
    return CertificateBuilder.build_root_ca(
        subject_dn=root_dn,
        private_key=generate_private_key(key_size=2048),
        validity_years=1,
    )


def _leaf(
    root_ca: RootCA, names: list[x509.GeneralName], ecdsa: bool = False, client: bool = False
) -> x509.Certificate:
    key = generate_ec_private_key() if ecdsa else generate_private_key(key_size=2048)
    return CertificateBuilder.build_leaf_certificate(
        subject=x509.Name([]),
        public_key=key.public_key(),
        general_names=names,
        issuer_cert=root_ca.certificate,
        issuer_key=root_ca.private_key,
        validity_days=30,
        client=client,
    )


def _eku(cert: x509.Certificate) -> list[x509.ObjectIdentifier]:
    return list(cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value)


class TestBuildRootCA:
    """Tests for build_root_ca()."""

    def test_root_ca_is_self_signed(self, root_cert: x509.Certificate) -> None:
        assert root_cert.issuer == root_cert.subject
        root_cert.verify_directly_issued_by(root_cert)

    def test_root_ca_basic_constraints(self, root_cert: x509.Certificate) -> None:
        """Root CA is a critical CA with path length 0."""
        bc = root_cert.extensions.get_extension_for_class(x509.BasicConstraints)
        assert bc.critical is True
        assert bc.value.ca is True
        assert bc.value.path_length == 0

    def test_root_ca_key_usage(self, root_cert: x509.Certificate) -> None:
        """Root CA may only sign certificates."""
        ku = root_cert.extensions.get_extension_for_class(x509.KeyUsage)
        assert ku.critical is True
        assert ku.value.key_cert_sign is True
        assert ku.value.digital_signature is False

    def test_root_ca_validity_period(self, root_cert: x509.Certificate) -> None:
        validity = root_cert.not_valid_after_utc - root_cert.not_valid_before_utc
        assert validity == timedelta(days=365)
        assert root_cert.not_valid_before_utc <= datetime.now(UTC)

    def test_root_ca_subject_matches_dn(self, root_cert: x509.Certificate) -> None:
        cn = root_cert.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
        ou = root_cert.subject.get_attributes_for_oid(x509.NameOID.ORGANIZATIONAL_UNIT_NAME)
        assert cn[0].value == "Test Root CA"
        assert ou[0].value == "tester@testhost"


class TestBuildLeafCertificate:
    """Tests for build_leaf_certificate()."""

    def test_leaf_issuer_matches_root_subject(self, root_ca: RootCA) -> None:
        cert = _leaf(root_ca, [x509.DNSName("example.org")])

        assert cert.issuer == root_ca.certificate.subject
        cert.verify_directly_issued_by(root_ca.certificate)

    def test_rsa_leaf_key_usage_includes_key_encipherment(self, root_ca: RootCA) -> None:
        ku = _leaf(root_ca, [x509.DNSName("example.org")]).extensions.get_extension_for_class(x509.KeyUsage)

        assert ku.critical is True
        assert ku.value.digital_signature is True
        assert ku.value.key_encipherment is True

    def test_ecdsa_leaf_key_usage_omits_key_encipherment(self, root_ca: RootCA) -> None:
        cert = _leaf(root_ca, [x509.DNSName("example.org")], ecdsa=True)
        ku = cert.extensions.get_extension_for_class(x509.KeyUsage)

        assert ku.value.digital_signature is True
        assert ku.value.key_encipherment is False

    def test_server_names_get_server_auth(self, root_ca: RootCA) -> None:
        cert = _leaf(root_ca, [x509.DNSName("example.org"), x509.IPAddress(ipaddress.ip_address("127.0.0.1"))])

        assert _eku(cert) == [ExtendedKeyUsageOID.SERVER_AUTH]

    def test_client_flag_adds_client_auth(self, root_ca: RootCA) -> None:
        cert = _leaf(root_ca, [x509.DNSName("example.org")], client=True)

        assert ExtendedKeyUsageOID.CLIENT_AUTH in _eku(cert)

    def test_email_gets_email_protection_only(self, root_ca: RootCA) -> None:
        """An email-only certificate is not usable as a TLS server certificate."""
        cert = _leaf(root_ca, [x509.RFC822Name("dev@example.org")])

        assert _eku(cert) == [ExtendedKeyUsageOID.EMAIL_PROTECTION]

    def test_subject_alternative_names_are_set(self, root_ca: RootCA) -> None:
        names = [x509.DNSName("example.org"), x509.UniformResourceIdentifier("https://example.org")]
        cert = _leaf(root_ca, names)

        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
        assert list(san) == names

    def test_validity_period_matches_input_days(self, root_ca: RootCA) -> None:
        cert = _leaf(root_ca, [x509.DNSName("example.org")])

        assert cert.not_valid_after_utc - cert.not_valid_before_utc == timedelta(days=30)


class TestBuildFromCSR:
    """Tests for build_from_csr()."""

    def test_copies_subject_and_sans(self, root_ca: RootCA) -> None:
        key = generate_ec_private_key()
        subject = x509.Name([x509.NameAttribute(x509.NameOID.COMMON_NAME, "csr.example.org")])
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(subject)
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName("csr.example.org"), x509.RFC822Name("dev@example.org")]),
                critical=False,
            )
            .sign(key, hashes.SHA256())
        )

        cert = CertificateBuilder.build_from_csr(csr, root_ca.certificate, root_ca.private_key, validity_days=30)

        assert cert.subject == subject
        assert cert.public_key() == key.public_key()
        # Email SANs from a CSR imply client authentication
        assert _eku(cert) == [
            ExtendedKeyUsageOID.SERVER_AUTH,
            ExtendedKeyUsageOID.CLIENT_AUTH,
            ExtendedKeyUsageOID.EMAIL_PROTECTION,
        ]

    def test_raises_on_invalid_csr_signature(self, root_ca: RootCA) -> None:
        """build_from_csr raises CSRError when the CSR signature does not verify."""
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(x509.Name([x509.NameAttribute(x509.NameOID.COMMON_NAME, "tampered")]))
            .sign(generate_ec_private_key(), hashes.SHA256())
        )
        # cryptography cannot produce an invalid CSR directly
        with (
            patch("local_ca.lib.certificate_builder.validate_csr_signature", return_value=False),
            pytest.raises(CSRError, match="invalid CSR signature"),
        ):
            CertificateBuilder.build_from_csr(csr, root_ca.certificate, root_ca.private_key, validity_days=30)
