"""
Registry HTTP Client for the OCI Distribution API.

Thin httpx wrapper that expands distribution endpoint templates such as
``/v2/<name>/manifests/<reference>``, sends the fixed ocidist User-Agent,
honors the TLS-verification toggle and retries transient transport failures.
Status code interpretation is left to the caller.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .. import __version__
from ..errors import NetworkError
from ..settings import Settings

logger = logging.getLogger(__name__)

USER_AGENT = f"ocidist/{__version__} (https://github.com/project-machine/ocidist)"

# Transport errors worth another attempt
_RETRYABLE = (httpx.TimeoutException, httpx.ConnectError)


def expand_path(template: str, **params: Optional[str]) -> str:
    """
    Expand ``<placeholder>`` segments of a distribution endpoint template.
    
    Examples:
        >>> expand_path("/v2/<name>/blobs/<digest>", name="ns/app", digest="sha256:ab")
        "/v2/ns/app/blobs/sha256:ab"
        
    Raises:
        ValueError: If a placeholder is left without a value
    """
    path = template
    for key, value in params.items():
        if value is not None:
            path = path.replace(f"<{key}>", value)
    if "<" in path or ">" in path:
        raise ValueError(f"Unexpanded placeholder in endpoint '{path}'")
    return path


class RegistryClient:
    """
    HTTP client for OCI Distribution API requests.
    
    A client is created per backend operation and closed when the
    operation finishes, so no connection state is shared across calls.
    """
    
    def __init__(self, base_url: str, settings: Settings,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize registry HTTP client.
        
        Args:
            base_url: Registry base address (e.g. "http://localhost:5000")
            settings: TLS, timeout and retry configuration
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.base_url = base_url
        self.settings = settings
        self.client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(settings.http_timeout_s),
            follow_redirects=True,
            verify=settings.tls_verify,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )
    
    def request(self, method: str, template: str, *,
                name: Optional[str] = None,
                reference: Optional[str] = None,
                digest: Optional[str] = None,
                headers: Optional[Dict[str, str]] = None,
                params: Optional[Dict[str, str]] = None,
                content: Optional[bytes] = None) -> httpx.Response:
        """
        Send a request to a templated endpoint.
        
        Args:
            method: HTTP method
            template: Endpoint template or an upload location returned by
                the registry (relative or absolute)
            name: Repository name for ``<name>``
            reference: Tag or digest for ``<reference>``
            digest: Digest for ``<digest>``
            headers: Extra request headers
            params: Query parameters, merged with any query in the location
            content: Request body
            
        Returns:
            The response, whatever its status
            
        Raises:
            NetworkError: If the request could not be completed
        """
        path = expand_path(template, name=name, reference=reference, digest=digest)
        retrying = Retrying(
            stop=stop_after_attempt(self.settings.http_retry + 1),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(_RETRYABLE),
            reraise=True,
        )
        
        try:
            for attempt in retrying:
                with attempt:
                    response = self.client.request(
                        method, path, headers=headers, params=params, content=content
                    )
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {self.base_url}{path} failed: {e}") from e
        
        logger.debug(f"{method} {response.request.url} -> {response.status_code}")
        return response
    
    def close(self):
        """Close HTTP client."""
        self.client.close()
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


__all__ = ["RegistryClient", "USER_AGENT", "expand_path"]
