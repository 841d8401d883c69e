"""Certificate builder for the root CA and leaf certificates."""

from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.types import (
    CertificateIssuerPrivateKeyTypes,
    CertificatePublicKeyTypes,
)
from cryptography.x509.oid import ExtendedKeyUsageOID

from .cert_utils import generate_serial_number, validate_csr_signature
from .config import DistinguishedName
from .errors import CSRError


def _extended_key_usages(
    general_names: list[x509.GeneralName], client: bool, email_implies_client: bool = False
) -> list[x509.ObjectIdentifier]:
    usages = []
    if any(isinstance(n, (x509.DNSName, x509.IPAddress, x509.UniformResourceIdentifier)) for n in general_names):
        usages.append(ExtendedKeyUsageOID.SERVER_AUTH)
    has_email = any(isinstance(n, x509.RFC822Name) for n in general_names)
    if client or (has_email and email_implies_client):
        usages.append(ExtendedKeyUsageOID.CLIENT_AUTH)
    if has_email:
        usages.append(ExtendedKeyUsageOID.EMAIL_PROTECTION)
    return usages


class CertificateBuilder:
    """Builds the self-signed root CA and the leaf certificates it issues."""

    @staticmethod
    def build_root_ca(
        subject_dn: DistinguishedName,
        private_key: CertificateIssuerPrivateKeyTypes,
        validity_years: int,
    ) -> x509.Certificate:
        """Build self-signed Root CA certificate.

        Args:
            subject_dn: Distinguished name for certificate subject
            private_key: Private key for signing
            validity_years: Certificate validity period in years

        Returns:
            Self-signed X.509 certificate restricted to certificate signing
        """
        subject = subject_dn.to_x509_name()
        public_key = private_key.public_key()
        not_before = datetime.now(timezone.utc)
        not_after = not_before + timedelta(days=validity_years * 365)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=0),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(
                    digital_signature=False,
                    content_commitment=False,
                    key_encipherment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=True,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),
                critical=False,
            )
        )

        return builder.sign(private_key, hashes.SHA256())

    @staticmethod
    def build_leaf_certificate(
        subject: x509.Name,
        public_key: CertificatePublicKeyTypes,
        general_names: list[x509.GeneralName],
        issuer_cert: x509.Certificate,
        issuer_key: CertificateIssuerPrivateKeyTypes,
        validity_days: int,
        client: bool = False,
        email_implies_client: bool = False,
    ) -> x509.Certificate:
        """Build end-entity certificate signed by the root CA.

        Args:
            subject: Subject name for the certificate
            public_key: Public key to certify
            general_names: Subject Alternative Names
            issuer_cert: Root CA certificate (issuer)
            issuer_key: Root CA private key for signing
            validity_days: Certificate validity period in days
            client: Add the clientAuth extended key usage
            email_implies_client: Add clientAuth whenever an email SAN is present

        Returns:
            X.509 end-entity certificate
        """
        not_before = datetime.now(timezone.utc)
        not_after = not_before + timedelta(days=validity_days)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer_cert.subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_after)
            .add_extension(
                x509.KeyUsage(
                    digital_signature=True,
                    content_commitment=False,
                    key_encipherment=isinstance(public_key, rsa.RSAPublicKey),
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_cert.public_key()),
                critical=False,
            )
        )

        usages = _extended_key_usages(general_names, client, email_implies_client)
        if usages:
            builder = builder.add_extension(x509.ExtendedKeyUsage(usages), critical=False)
        if general_names:
            builder = builder.add_extension(x509.SubjectAlternativeName(general_names), critical=False)

        return builder.sign(issuer_key, hashes.SHA256())

    @staticmethod
    def build_from_csr(
        csr: x509.CertificateSigningRequest,
        issuer_cert: x509.Certificate,
        issuer_key: CertificateIssuerPrivateKeyTypes,
        validity_days: int,
    ) -> x509.Certificate:
        """Build a certificate from an externally supplied CSR.

        The CSR subject and Subject Alternative Names are copied unchanged.

        Raises:
            CSRError: If the CSR signature is invalid
        """
        if not validate_csr_signature(csr):
            raise CSRError("invalid CSR signature")

        try:
            san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
            general_names = list(san.value)
        except x509.ExtensionNotFound:
            general_names = []

        return CertificateBuilder.build_leaf_certificate(
            subject=csr.subject,
            public_key=csr.public_key(),
            general_names=general_names,
            issuer_cert=issuer_cert,
            issuer_key=issuer_key,
            validity_days=validity_days,
            email_implies_client=True,
        )
