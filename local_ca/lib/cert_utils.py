"""Certificate utility functions for key generation, serialization, and fingerprints."""

import uuid

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes
from cryptography.hazmat.primitives.serialization import pkcs12

PKCS12_PASSWORD = b"changeit"


def generate_private_key(key_size: int = 2048) -> rsa.RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def generate_ec_private_key() -> ec.EllipticCurvePrivateKey:
    """Generate ECDSA P-256 private key."""
    return ec.generate_private_key(ec.SECP256R1())


def serialize_private_key(key: CertificateIssuerPrivateKeyTypes) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def deserialize_private_key(pem_data: bytes) -> CertificateIssuerPrivateKeyTypes:
    """Deserialize an RSA or ECDSA private key from PEM bytes."""
    key = serialization.load_pem_private_key(pem_data, password=None)
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise ValueError("expected RSA or ECDSA private key")
    return key


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes."""
    return x509.load_pem_x509_certificate(pem_data)


def deserialize_csr(pem_data: bytes) -> x509.CertificateSigningRequest:
    """Deserialize CSR from PEM bytes."""
    return x509.load_pem_x509_csr(pem_data)


def validate_csr_signature(csr: x509.CertificateSigningRequest) -> bool:
    """Verify CSR self-signature to prove private key possession."""
    try:
        return csr.is_signature_valid
    except (InvalidSignature, ValueError):
        return False


def generate_serial_number() -> int:
    """Generate certificate serial number from UUID4.

    UUID v4 gives 128-bit values with ~122 bits of randomness, well above
    the 64 bits CA/Browser Forum baseline. The serial is part of the CA's
    unique name, so distinct roots must not collide.
    """
    return uuid.uuid4().int


def certificate_fingerprint(cert: x509.Certificate, algorithm: hashes.HashAlgorithm) -> str:
    """Return the certificate fingerprint as upper-case hex without separators."""
    return cert.fingerprint(algorithm).hex().upper()


def subject_der(cert: x509.Certificate) -> bytes:
    """Return the DER encoding of the certificate subject RDN sequence."""
    return cert.subject.public_bytes()


def serialize_pkcs12(
    name: str,
    cert: x509.Certificate,
    key: CertificateIssuerPrivateKeyTypes,
    ca_cert: x509.Certificate,
    password: bytes = PKCS12_PASSWORD,
) -> bytes:
    """Bundle certificate, key and CA certificate as a PKCS #12 file."""
    return pkcs12.serialize_key_and_certificates(
        name=name.encode(),
        key=key,
        cert=cert,
        cas=[ca_cert],
        encryption_algorithm=serialization.BestAvailableEncryption(password),
    )


def is_issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """Return True if cert is signed by issuer."""
    try:
        cert.verify_directly_issued_by(issuer)
        return True
    except (InvalidSignature, ValueError, TypeError):
        return False
