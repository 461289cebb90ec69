"""
OCI error classes.

Provides a clear taxonomy of errors that can occur while talking to a
registry, reading a local OCI layout, or handling SOCI bundles. HTTP status
codes and transport exceptions are mapped onto these classes at the backend
boundary so callers never need to know which backend they used.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class OciError(Exception):
    """Base class for all ocidist errors."""
    pass


class UrlParseError(OciError, ValueError):
    """A repository URL could not be parsed."""
    pass


class UnsupportedSchemeError(OciError, ValueError):
    """
    URL scheme has no backend.
    
    Raised when the scheme is not one of ``ocidist``, ``docker``, ``http``,
    ``https`` (registry) or ``oci`` (local layout).
    """
    pass


class NetworkError(OciError):
    """
    Transport-level failure.
    
    Raised when:
    - connection refused / DNS failure
    - TLS handshake failure
    - timeouts after the configured retries are exhausted
    """
    pass


class ProtocolError(OciError):
    """
    Registry answered with an unexpected HTTP status.
    
    The status code is kept on ``status`` so callers can branch on it.
    """
    
    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class NotFoundError(OciError):
    """
    Resource not found.
    
    Raised when:
    - HTTP 404 Not Found (manifest, blob, or repository doesn't exist)
    - a reference or blob is missing from a local layout
    - a SOCI image has no referrer of the requested kind
    """
    pass


class ValidationError(OciError):
    """
    Content did not have the expected shape.
    
    Raised when:
    - wrong media type or artifact type
    - wrong number of layers
    - malformed JSON document or bundle file
    - unsupported signature encoding
    """
    pass


class DigestMismatchError(ValidationError):
    """Fetched bytes do not hash to the digest they were addressed by."""
    
    def __init__(self, message: str, expected: Optional[str] = None, actual: Optional[str] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class OperationNotSupported(OciError, NotImplementedError):
    """Backend does not implement the requested operation."""
    pass


class LocalIOError(OciError, OSError):
    """Local file (layout, bundle, key, certificate, CA file) could not be read or written."""
    pass


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of a SOCI verification.
    
    A failed verification is a result, not an exception: ``ok`` is False,
    ``diagnostic`` explains why and ``error`` holds the underlying cause
    when there is one.
    """
    ok: bool
    diagnostic: str
    error: Optional[BaseException] = None
    
    def __bool__(self) -> bool:
        return self.ok


__all__ = [
    "OciError",
    "UrlParseError",
    "UnsupportedSchemeError",
    "NetworkError",
    "ProtocolError",
    "NotFoundError",
    "ValidationError",
    "DigestMismatchError",
    "OperationNotSupported",
    "LocalIOError",
    "VerificationResult",
]
