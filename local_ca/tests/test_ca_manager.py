"""Tests for CAManager class."""

import stat
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from local_ca.lib.ca_manager import CAManager
from local_ca.lib.cert_utils import PKCS12_PASSWORD, generate_ec_private_key, is_issued_by
from local_ca.lib.errors import InvalidNameError, MissingKeyError, ParseError, UsageError
from local_ca.lib.models import ROOT_CERT_NAME, ROOT_KEY_NAME, RootCA


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


class TestLoadOrCreate:
    """Tests for load_or_create() - root CA lifecycle in CAROOT."""

    def test_creates_caroot_and_files(self, ca_manager: CAManager, caroot: Path) -> None:
        """First use creates CAROOT, rootCA.pem and rootCA-key.pem."""
        ca, created = ca_manager.load_or_create(caroot)

        assert created is True
        assert ca.cert_path == caroot / ROOT_CERT_NAME
        assert ca.key_path == caroot / ROOT_KEY_NAME
        assert ca.cert_path.exists()
        assert ca.key_path.exists()

    def test_file_permissions(self, root_ca: RootCA) -> None:
        """The key is owner read-only, the certificate world readable."""
        assert _mode(root_ca.key_path) == 0o400
        assert _mode(root_ca.cert_path) == 0o644

    def test_second_call_loads_same_ca(self, ca_manager: CAManager, caroot: Path, root_ca: RootCA) -> None:
        ca, created = ca_manager.load_or_create(caroot)

        assert created is False
        assert ca.certificate == root_ca.certificate
        assert ca.unique_name == root_ca.unique_name

    def test_root_subject_names_user_and_host(self, root_ca: RootCA) -> None:
        cn = root_ca.certificate.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)[0].value

        assert cn == "local-ca tester@testhost"

    def test_unique_name_contains_serial(self, root_ca: RootCA) -> None:
        assert root_ca.unique_name == f"local-ca development CA {root_ca.certificate.serial_number}"

    def test_missing_key_raises(self, ca_manager: CAManager, caroot: Path, root_ca: RootCA) -> None:
        """A certificate without its key cannot be used to sign."""
        root_ca.key_path.chmod(0o600)
        root_ca.key_path.unlink()

        with pytest.raises(MissingKeyError, match="rootCA-key.pem"):
            ca_manager.load_or_create(caroot)

    def test_corrupt_certificate_raises_parse_error(self, ca_manager: CAManager, caroot: Path) -> None:
        caroot.mkdir()
        (caroot / ROOT_CERT_NAME).write_bytes(b"garbage")

        with pytest.raises(ParseError, match="unexpected content"):
            ca_manager.load_or_create(caroot)

    def test_corrupt_key_raises_parse_error(self, ca_manager: CAManager, caroot: Path, root_ca: RootCA) -> None:
        root_ca.key_path.chmod(0o600)
        root_ca.key_path.write_bytes(b"garbage")

        with pytest.raises(ParseError, match="unexpected content"):
            ca_manager.load_or_create(caroot)


class TestIssueLeaf:
    """Tests for issue_leaf()."""

    def test_issues_certificate_for_all_names(self, ca_manager: CAManager, root_ca: RootCA) -> None:
        issued = ca_manager.issue_leaf(root_ca, ["example.com", "localhost", "127.0.0.1", "::1"])

        assert issued.hosts == ["example.com", "localhost", "127.0.0.1", "::1"]
        assert is_issued_by(issued.certificate, root_ca.certificate)
        assert isinstance(issued.private_key, rsa.RSAPrivateKey)

    def test_ecdsa_flag_uses_p256(self, ca_manager: CAManager, root_ca: RootCA) -> None:
        issued = ca_manager.issue_leaf(root_ca, ["example.org"], ecdsa=True)

        assert isinstance(issued.private_key, ec.EllipticCurvePrivateKey)

    def test_common_name_only_for_pkcs12(self, ca_manager: CAManager, root_ca: RootCA) -> None:
        plain = ca_manager.issue_leaf(root_ca, ["example.org"])
        bundled = ca_manager.issue_leaf(root_ca, ["example.org"], pkcs12=True)

        assert plain.certificate.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME) == []
        assert bundled.certificate.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)[0].value == "example.org"

    def test_invalid_name_raises(self, ca_manager: CAManager, root_ca: RootCA) -> None:
        with pytest.raises(InvalidNameError):
            ca_manager.issue_leaf(root_ca, ["!"])

    def test_no_names_raises(self, ca_manager: CAManager, root_ca: RootCA) -> None:
        with pytest.raises(UsageError):
            ca_manager.issue_leaf(root_ca, [])


class TestSignCSR:
    """Tests for sign_csr()."""

    def test_signs_csr_and_collects_hosts(self, ca_manager: CAManager, root_ca: RootCA) -> None:
        key = generate_ec_private_key()
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(x509.Name([x509.NameAttribute(x509.NameOID.COMMON_NAME, "csr.example.org")]))
            .add_extension(
                x509.SubjectAlternativeName([x509.DNSName("csr.example.org"), x509.DNSName("www.example.org")]),
                critical=False,
            )
            .sign(key, hashes.SHA256())
        )
        pem = csr.public_bytes(serialization.Encoding.PEM)

        issued = ca_manager.sign_csr(root_ca, pem)

        assert issued.private_key is None
        assert issued.hosts == ["csr.example.org", "www.example.org"]
        assert is_issued_by(issued.certificate, root_ca.certificate)

    def test_garbage_csr_raises_parse_error(self, ca_manager: CAManager, root_ca: RootCA) -> None:
        with pytest.raises(ParseError, match="CSR"):
            ca_manager.sign_csr(root_ca, b"not a csr")


class TestWriteLeaf:
    """Tests for write_leaf() - output naming and permissions."""

    def test_writes_name_derived_files(self, ca_manager: CAManager, root_ca: RootCA, tmp_path: Path) -> None:
        issued = ca_manager.issue_leaf(root_ca, ["example.com", "myapp.dev", "localhost", "127.0.0.1", "::1"])

        files = ca_manager.write_leaf(issued, root_ca, tmp_path)

        assert files.cert_path == tmp_path / "example.com+4.pem"
        assert files.key_path == tmp_path / "example.com+4-key.pem"
        assert _mode(files.cert_path) == 0o644
        assert _mode(files.key_path) == 0o600

    def test_wildcard_file_names(self, ca_manager: CAManager, root_ca: RootCA, tmp_path: Path) -> None:
        issued = ca_manager.issue_leaf(root_ca, ["*.example.it"])

        files = ca_manager.write_leaf(issued, root_ca, tmp_path)

        assert files.cert_path == tmp_path / "_wildcard.example.it.pem"
        assert files.key_path == tmp_path / "_wildcard.example.it-key.pem"

    def test_same_cert_and_key_file_bundles_both(
        self, ca_manager: CAManager, root_ca: RootCA, tmp_path: Path
    ) -> None:
        """When -cert-file and -key-file match, both go into one private file."""
        issued = ca_manager.issue_leaf(root_ca, ["example.org"])
        bundle = tmp_path / "bundle.pem"

        files = ca_manager.write_leaf(issued, root_ca, tmp_path, cert_file=bundle, key_file=bundle)

        content = bundle.read_bytes()
        assert files.cert_path == files.key_path == bundle
        assert b"BEGIN CERTIFICATE" in content
        assert b"BEGIN PRIVATE KEY" in content
        assert _mode(bundle) == 0o600

    def test_pkcs12_bundle(self, ca_manager: CAManager, root_ca: RootCA, tmp_path: Path) -> None:
        issued = ca_manager.issue_leaf(root_ca, ["example.org"], pkcs12=True)

        files = ca_manager.write_leaf(issued, root_ca, tmp_path, pkcs12=True)

        assert files.p12_path == tmp_path / "example.org.p12"
        assert files.cert_path is None
        bundle = pkcs12.load_pkcs12(files.p12_path.read_bytes(), PKCS12_PASSWORD)
        assert bundle.cert.certificate == issued.certificate

    def test_csr_certificate_is_written_without_key(
        self, ca_manager: CAManager, root_ca: RootCA, tmp_path: Path
    ) -> None:
        issued = ca_manager.issue_leaf(root_ca, ["example.org"])
        issued.private_key = None

        files = ca_manager.write_leaf(issued, root_ca, tmp_path, cert_file=tmp_path / "out.pem")

        assert files.cert_path == tmp_path / "out.pem"
        assert files.key_path is None

    def test_existing_file_is_replaced(self, ca_manager: CAManager, root_ca: RootCA, tmp_path: Path) -> None:
        (tmp_path / "example.org.pem").write_bytes(b"stale")
        issued = ca_manager.issue_leaf(root_ca, ["example.org"])

        files = ca_manager.write_leaf(issued, root_ca, tmp_path)

        assert files.cert_path.read_bytes().startswith(b"-----BEGIN CERTIFICATE-----")
