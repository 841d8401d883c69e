"""CA manager for the local root CA and the certificates it issues."""

import os
from pathlib import Path

from cryptography import x509

from .cert_utils import (
    deserialize_certificate,
    deserialize_csr,
    deserialize_private_key,
    generate_ec_private_key,
    generate_private_key,
    serialize_certificate,
    serialize_pkcs12,
    serialize_private_key,
)
from .certificate_builder import CertificateBuilder
from .config import CAConfig, DistinguishedName
from .errors import MissingKeyError, ParseError, StorageError, UsageError
from .models import ROOT_CERT_NAME, ROOT_KEY_NAME, IssuedCertificate, LeafFiles, RootCA
from .names import classify_all, output_basename


def _read_file(path: Path, what: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise StorageError(f"failed to read the {what} {path}: {e}") from e


def _write_file(path: Path, data: bytes, mode: int) -> None:
    """Replace path with data, created with the given permissions."""
    try:
        path.unlink(missing_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except OSError as e:
        raise StorageError(f"failed to save {path}: {e}") from e


class CAManager:
    """Certificate Authority manager for the local development CA."""

    def __init__(self, config: CAConfig) -> None:
        """Initialize CA manager with configuration.

        Args:
            config: CA configuration with validity periods and subject labels
        """
        self.config = config

    def load_or_create(self, root_dir: Path) -> tuple[RootCA, bool]:
        """Load the root CA from root_dir, creating it on first use.

        Args:
            root_dir: CAROOT directory holding rootCA.pem and rootCA-key.pem

        Returns:
            Tuple of (root CA, created)

        Raises:
            StorageError: If the directory or files cannot be created or read
            ParseError: If an existing file has unexpected content
            MissingKeyError: If the certificate exists without its key
        """
        try:
            root_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"failed to create the CAROOT {root_dir}: {e}") from e

        if not (root_dir / ROOT_CERT_NAME).exists():
            return self.create_root_ca(root_dir), True
        return self.load_root_ca(root_dir), False

    def load_root_ca(self, root_dir: Path) -> RootCA:
        """Load an existing root CA certificate and key."""
        cert_path = root_dir / ROOT_CERT_NAME
        key_path = root_dir / ROOT_KEY_NAME

        cert_pem = _read_file(cert_path, "CA certificate")
        try:
            certificate = deserialize_certificate(cert_pem)
        except ValueError as e:
            raise ParseError(f"failed to read the CA certificate: unexpected content in {cert_path}") from e

        if not key_path.exists() or key_path.stat().st_size == 0:
            raise MissingKeyError(
                f"the CA key ({ROOT_KEY_NAME}) is missing from {root_dir}; "
                "certificates can't be signed without it"
            )

        key_pem = _read_file(key_path, "CA key")
        try:
            private_key = deserialize_private_key(key_pem)
        except (ValueError, TypeError) as e:
            raise ParseError(f"failed to read the CA key: unexpected content in {key_path}") from e

        return RootCA(certificate=certificate, private_key=private_key, cert_path=cert_path, key_path=key_path)

    def create_root_ca(self, root_dir: Path) -> RootCA:
        """Generate a new root CA and persist it to root_dir.

        Generates:
            - rootCA-key.pem: PKCS8 private key, readable by the owner only
            - rootCA.pem: self-signed certificate
        """
        private_key = generate_private_key(self.config.root_key_size)
        subject_dn = DistinguishedName(
            organization=self.config.root_organization,
            organizational_unit=self.config.user_and_hostname,
            common_name=f"local-ca {self.config.user_and_hostname}",
        )
        certificate = CertificateBuilder.build_root_ca(
            subject_dn=subject_dn,
            private_key=private_key,
            validity_years=self.config.root_validity_years,
        )

        cert_path = root_dir / ROOT_CERT_NAME
        key_path = root_dir / ROOT_KEY_NAME
        _write_file(key_path, serialize_private_key(private_key), 0o400)
        _write_file(cert_path, serialize_certificate(certificate), 0o644)

        return RootCA(certificate=certificate, private_key=private_key, cert_path=cert_path, key_path=key_path)

    def issue_leaf(
        self,
        ca: RootCA,
        names: list[str],
        ecdsa: bool = False,
        client: bool = False,
        pkcs12: bool = False,
    ) -> IssuedCertificate:
        """Issue a leaf certificate for names, signed by the root CA.

        Args:
            ca: Loaded root CA
            names: Hostnames, wildcards, IPs, emails or URIs
            ecdsa: Use an ECDSA P-256 key instead of RSA
            client: Add the clientAuth extended key usage
            pkcs12: Also set the first name as Common Name, for PKCS #12 consumers

        Raises:
            InvalidNameError: If any name is not a hostname, IP, email or URI
        """
        if not names:
            raise UsageError("at least one name is required")
        classified = classify_all(names)

        private_key = generate_ec_private_key() if ecdsa else generate_private_key(self.config.leaf_key_size)
        subject = DistinguishedName(
            organization=self.config.leaf_organization,
            organizational_unit=self.config.user_and_hostname,
            common_name=classified[0].value if pkcs12 else None,
        ).to_x509_name()

        certificate = CertificateBuilder.build_leaf_certificate(
            subject=subject,
            public_key=private_key.public_key(),
            general_names=[name.to_general_name() for name in classified],
            issuer_cert=ca.certificate,
            issuer_key=ca.private_key,
            validity_days=self.config.leaf_validity_days,
            client=client,
        )

        return IssuedCertificate(
            certificate=certificate,
            private_key=private_key,
            hosts=[name.value for name in classified],
        )

    def sign_csr(self, ca: RootCA, csr_pem: bytes) -> IssuedCertificate:
        """Sign an externally supplied PEM certificate signing request.

        Raises:
            ParseError: If the CSR is not valid PEM
            CSRError: If the CSR signature does not verify
        """
        try:
            csr = deserialize_csr(csr_pem)
        except ValueError as e:
            raise ParseError("failed to read the CSR: unexpected content") from e

        certificate = CertificateBuilder.build_from_csr(
            csr=csr,
            issuer_cert=ca.certificate,
            issuer_key=ca.private_key,
            validity_days=self.config.leaf_validity_days,
        )

        hosts: list[str] = []
        try:
            san = certificate.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
            hosts.extend(san.get_values_for_type(x509.DNSName))
            hosts.extend(san.get_values_for_type(x509.RFC822Name))
            hosts.extend(str(ip) for ip in san.get_values_for_type(x509.IPAddress))
            hosts.extend(san.get_values_for_type(x509.UniformResourceIdentifier))
        except x509.ExtensionNotFound:
            pass

        return IssuedCertificate(certificate=certificate, private_key=None, hosts=hosts)

    def write_leaf(
        self,
        issued: IssuedCertificate,
        ca: RootCA,
        output_dir: Path,
        cert_file: Path | None = None,
        key_file: Path | None = None,
        p12_file: Path | None = None,
        pkcs12: bool = False,
    ) -> LeafFiles:
        """Write an issued certificate using the name-derived file names.

        Explicit paths override the derived ones. When cert_file and key_file
        are the same path, certificate and key are written to one file.

        Returns:
            LeafFiles with the paths that were written
        """
        if not issued.hosts and not (cert_file or p12_file):
            raise UsageError("the certificate has no names, set an explicit output file")
        base = output_basename(issued.hosts) if issued.hosts else ""

        if pkcs12:
            if issued.private_key is None:
                raise UsageError("a PKCS #12 bundle needs the certificate private key")
            p12_path = p12_file or output_dir / f"{base}.p12"
            data = serialize_pkcs12(base or p12_path.stem, issued.certificate, issued.private_key, ca.certificate)
            _write_file(p12_path, data, 0o644)
            return LeafFiles(p12_path=p12_path)

        cert_path = cert_file or output_dir / f"{base}.pem"
        cert_pem = serialize_certificate(issued.certificate)
        if issued.private_key is None:
            _write_file(cert_path, cert_pem, 0o644)
            return LeafFiles(cert_path=cert_path)

        key_path = key_file or output_dir / f"{base}-key.pem"
        key_pem = serialize_private_key(issued.private_key)
        if cert_path == key_path:
            _write_file(cert_path, cert_pem + key_pem, 0o600)
        else:
            _write_file(cert_path, cert_pem, 0o644)
            _write_file(key_path, key_pem, 0o600)
        return LeafFiles(cert_path=cert_path, key_path=key_path)
