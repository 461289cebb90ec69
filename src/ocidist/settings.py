"""
Settings and configuration for ocidist.

Centralizes configuration values and provides validation with fail-fast behavior.
Settings are passed explicitly to every backend at construction time; nothing
here is process-wide mutable state.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass

__all__ = ["Settings", "create_settings_from_env"]

_PRODUCT_RE = re.compile(r"^[a-z0-9][a-z0-9.-]*$")


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for ocidist backends.
    
    Registry Settings:
        tls_verify: Use https and validate certificates; when False plain
            http is used and certificate validation is skipped
        debug: Enable debug logging in the CLI
        http_timeout_s: HTTP request timeout in seconds
        http_retry: Number of retries for timeouts/connect failures (0=no retry)
        verify_digests: Re-hash fetched blobs (and digest-addressed manifests)
            and reject content that does not match its digest
        
    SOCI Settings:
        product: Product token used to build SOCI artifact types
            (``application/vnd.<product>.<kind>``)
    """
    tls_verify: bool = True
    debug: bool = False
    http_timeout_s: float = 30.0
    http_retry: int = 0
    verify_digests: bool = True
    product: str = "atomix"
    
    def __post_init__(self):
        """Validate settings on construction."""
        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")
        
        if self.http_retry < 0:
            raise ValueError(f"http_retry must be non-negative, got {self.http_retry}")
        
        if not self.product or not _PRODUCT_RE.match(self.product):
            raise ValueError(f"Invalid product format: {self.product!r}. Use a lowercase token like 'atomix'.")


def create_settings_from_env() -> Settings:
    """
    Load settings from environment variables.
    
    Environment Variables:
        - OCIDIST_TLS_VERIFY (default: true)
        - OCIDIST_DEBUG (default: false)
        - OCIDIST_HTTP_TIMEOUT (default: 30.0)
        - OCIDIST_HTTP_RETRY (default: 0)
        - OCIDIST_VERIFY_DIGESTS (default: true)
        - OCIDIST_SOCI_PRODUCT (default: atomix)
    
    Returns:
        Settings object with validated configuration
        
    Raises:
        ValueError: If configuration is invalid
        
    Note:
        Creates a fresh Settings instance every time (no caching).
        This ensures test isolation and eliminates global state.
    """
    def str_to_bool(value: str) -> bool:
        return value.lower() in ('true', '1', 'yes', 'on')
    
    def get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        return float(value) if value else default
    
    def get_int(key: str, default: int) -> int:
        value = os.getenv(key)
        return int(value) if value else default
    
    return Settings(
        tls_verify=str_to_bool(os.getenv("OCIDIST_TLS_VERIFY", "true")),
        debug=str_to_bool(os.getenv("OCIDIST_DEBUG", "false")),
        http_timeout_s=get_float("OCIDIST_HTTP_TIMEOUT", 30.0),
        http_retry=get_int("OCIDIST_HTTP_RETRY", 0),
        verify_digests=str_to_bool(os.getenv("OCIDIST_VERIFY_DIGESTS", "true")),
        product=os.getenv("OCIDIST_SOCI_PRODUCT", "atomix"),
    )
