"""
Signing and verification primitive.

Detached SHA-256 signatures over raw bytes, compatible with
``openssl dgst -sha256 -sign`` / ``-verify``: RSA keys use PKCS#1 v1.5
padding, EC keys use DER-encoded ECDSA. Certificates are validated against
a PEM CA bundle by walking issuer links up to a self-signed root.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol, Union

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from .errors import LocalIOError, ValidationError

logger = logging.getLogger(__name__)

PublicKey = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]

# Guards against cyclic issuer links in a malformed bundle
_MAX_CHAIN_DEPTH = 16


class Signer(Protocol):
    """Signing capability used by bundle assembly and verification."""
    
    def sign(self, data: bytes, key_path: Union[str, Path]) -> bytes:
        ...
    
    def verify(self, data: bytes, signature: bytes, public_key: PublicKey) -> bool:
        ...
    
    def extract_public_key(self, cert_pem: bytes) -> PublicKey:
        ...
    
    def validate_certificate(self, cert_pem: bytes, ca_pem: bytes) -> bool:
        ...


def _read_file(path: Union[str, Path], what: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise LocalIOError(f"Failed to read {what} {str(path)!r}: {e}") from e


def load_certificate(cert_pem: bytes) -> x509.Certificate:
    """
    Parse a PEM certificate.
    
    Raises:
        ValidationError: If ``cert_pem`` is not a PEM certificate
    """
    try:
        return x509.load_pem_x509_certificate(cert_pem)
    except ValueError as e:
        raise ValidationError(f"Failed to parse certificate: {e}") from e


def describe_certificate(cert_pem: bytes) -> str:
    """Certificate subject as an RFC 4514 string, for diagnostics."""
    return load_certificate(cert_pem).subject.rfc4514_string()


class CryptographySigner:
    """Signer backed by the ``cryptography`` package."""
    
    def sign(self, data: bytes, key_path: Union[str, Path]) -> bytes:
        """
        Produce a detached SHA-256 signature of ``data``.
        
        Args:
            data: Bytes to sign
            key_path: Path to an unencrypted PEM private key (RSA or EC)
        
        Returns:
            Raw signature bytes
        
        Raises:
            LocalIOError: If the key file cannot be read
            ValidationError: If the key cannot be parsed or is of an unsupported type
        """
        key_pem = _read_file(key_path, "signing key")
        try:
            private_key = serialization.load_pem_private_key(key_pem, password=None)
        except (ValueError, TypeError) as e:
            raise ValidationError(f"Failed to load signing key {str(key_path)!r}: {e}") from e
        
        if isinstance(private_key, rsa.RSAPrivateKey):
            return private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())
        if isinstance(private_key, ec.EllipticCurvePrivateKey):
            return private_key.sign(data, ec.ECDSA(hashes.SHA256()))
        raise ValidationError(
            f"Unsupported signing key type {type(private_key).__name__} in {str(key_path)!r}"
        )
    
    def verify(self, data: bytes, signature: bytes, public_key: PublicKey) -> bool:
        """Check a detached SHA-256 signature; any failure is False."""
        try:
            if isinstance(public_key, rsa.RSAPublicKey):
                public_key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())
            elif isinstance(public_key, ec.EllipticCurvePublicKey):
                public_key.verify(signature, data, ec.ECDSA(hashes.SHA256()))
            else:
                logger.debug(f"Unsupported public key type {type(public_key).__name__}")
                return False
        except InvalidSignature:
            return False
        return True
    
    def extract_public_key(self, cert_pem: bytes) -> PublicKey:
        """
        Public key of a PEM certificate.
        
        Raises:
            ValidationError: If the certificate cannot be parsed or holds an
                unsupported key type
        """
        public_key = load_certificate(cert_pem).public_key()
        if not isinstance(public_key, (rsa.RSAPublicKey, ec.EllipticCurvePublicKey)):
            raise ValidationError(f"Unsupported certificate key type {type(public_key).__name__}")
        return public_key
    
    def validate_certificate(self, cert_pem: bytes, ca_pem: bytes) -> bool:
        """True when ``cert_pem`` chains to a root in the CA bundle ``ca_pem``."""
        try:
            check_certificate(cert_pem, ca_pem)
        except ValidationError as e:
            logger.debug(f"Certificate validation failed: {e}")
            return False
        return True


def check_certificate(cert_pem: bytes, ca_pem: bytes, *,
                      now: Optional[datetime] = None) -> None:
    """
    Validate a certificate against a CA bundle.
    
    Walks issuer links from the certificate through the bundle until a
    self-signed bundle certificate is reached. Every certificate on the
    path must be inside its validity window.
    
    Args:
        cert_pem: Leaf certificate (PEM)
        ca_pem: CA bundle (one or more PEM certificates)
        now: Reference time for validity checks (defaults to current UTC time)
    
    Raises:
        ValidationError: Describing the first failed check
    """
    now = now or datetime.now(timezone.utc)
    cert = load_certificate(cert_pem)
    try:
        bundle: List[x509.Certificate] = x509.load_pem_x509_certificates(ca_pem)
    except ValueError as e:
        raise ValidationError(f"Failed to parse CA bundle: {e}") from e
    
    current = cert
    for _ in range(_MAX_CHAIN_DEPTH):
        _check_validity(current, now)
        if current in bundle and _is_self_signed(current):
            return
        
        issuer = _find_issuer(current, bundle)
        if issuer is None:
            raise ValidationError(
                f"unable to get issuer certificate for '{current.subject.rfc4514_string()}'"
            )
        current = issuer
    
    raise ValidationError("certificate chain too long")


def _check_validity(cert: x509.Certificate, now: datetime) -> None:
    subject = cert.subject.rfc4514_string()
    if now < cert.not_valid_before_utc:
        raise ValidationError(f"certificate '{subject}' is not yet valid")
    if now > cert.not_valid_after_utc:
        raise ValidationError(f"certificate '{subject}' has expired")


def _is_self_signed(cert: x509.Certificate) -> bool:
    if cert.issuer != cert.subject:
        return False
    try:
        cert.verify_directly_issued_by(cert)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def _find_issuer(cert: x509.Certificate, bundle: List[x509.Certificate]) -> Optional[x509.Certificate]:
    for candidate in bundle:
        if candidate == cert or candidate.subject != cert.issuer:
            continue
        try:
            cert.verify_directly_issued_by(candidate)
        except (ValueError, TypeError, InvalidSignature):
            continue
        return candidate
    return None


__all__ = [
    "Signer",
    "CryptographySigner",
    "PublicKey",
    "load_certificate",
    "describe_certificate",
    "check_certificate",
]
