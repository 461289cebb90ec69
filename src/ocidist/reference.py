"""
Repository reference parsing.

Parses repository URLs into their components and decides which backend
serves them. Two URL families are accepted:

    ocidist://host[:port]/path/name[:tag]       remote registry
    ocidist://host[:port]/path/name@sha256:...  remote registry, by digest
    oci:///path/to/layout[:image[:tag]]         local OCI layout

``docker``, ``http`` and ``https`` are aliases of ``ocidist``.
"""
from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

from .errors import UnsupportedSchemeError, UrlParseError

__all__ = ["RepositoryRef", "parse_reference", "REGISTRY_SCHEMES", "LAYOUT_SCHEMES"]

REGISTRY_SCHEMES = ("ocidist", "docker", "http", "https")
LAYOUT_SCHEMES = ("oci",)


@dataclass(frozen=True)
class RepositoryRef:
    """
    Parsed components of a repository URL.
    
    Attributes:
        scheme: URL scheme
        host: URL authority (``[user:pass@]host[:port]``), may be empty for layouts
        path: Repository path for registries, layout directory for layouts;
            never begins with '/'
        name: Image name inside a local layout (empty for registries)
        tag: Tag or digest; empty means "the repository, not an image"
        original: Original URL string for error messages
    """
    scheme: str
    host: str
    path: str
    name: str
    tag: str
    original: str
    
    @property
    def kind(self) -> Literal["registry", "layout"]:
        return "layout" if self.scheme in LAYOUT_SCHEMES else "registry"
    
    @property
    def is_digest(self) -> bool:
        """True when ``tag`` is a content digest rather than a tag."""
        return ":" in self.tag
    
    def base_url(self, tls_verify: bool) -> str:
        """
        Base address of the registry serving this reference.
        
        Every registry scheme maps onto plain http, upgraded to https when
        TLS verification is enabled.
        """
        scheme = "https" if tls_verify else "http"
        return f"{scheme}://{self.host}"
    
    @property
    def layout_dir(self) -> str:
        """Local layout directory: the URL host joined with the path."""
        if self.host:
            return posixpath.join(self.host, self.path)
        return "/" + self.path
    
    @property
    def image_ref(self) -> str:
        """Reference name looked up in a layout index (``image`` or ``image:tag``)."""
        if self.tag:
            return f"{self.name}:{self.tag}"
        return self.name


def parse_reference(url: str) -> RepositoryRef:
    """
    Parse and validate a repository URL.
    
    Registry grammar: ``scheme://[user:pass@]host[:port]/path[:tag|@digest]``.
    Host and port are taken from the URL authority, so colons there never
    take part in tag splitting. The tag is everything after the first ':'
    of the path.
    
    Layout grammar: ``oci://[host]/dir[:image[:tag]]``. The directory may
    not contain ':'.
    
    Args:
        url: Repository URL to parse
        
    Returns:
        RepositoryRef with validated components
        
    Raises:
        UrlParseError: If the URL is malformed
        UnsupportedSchemeError: If no backend serves the scheme
        
    Examples:
        >>> parse_reference("ocidist://localhost:5000/myrepo/myimage:v2.1")
        RepositoryRef(scheme='ocidist', host='localhost:5000', path='myrepo/myimage', name='', tag='v2.1', ...)
        
        >>> parse_reference("oci:///data/oci:myimage:v1")
        RepositoryRef(scheme='oci', host='', path='data/oci', name='myimage', tag='v1', ...)
    """
    if not url:
        raise UrlParseError("URL cannot be empty")
    
    try:
        parts = urlsplit(url)
        # accessing port validates it
        parts.port
    except ValueError as e:
        raise UrlParseError(f"Failed to parse url '{url}': {e}") from e
    
    scheme = parts.scheme
    if not scheme:
        raise UrlParseError(f"URL '{url}' has no scheme")
    
    if scheme in REGISTRY_SCHEMES:
        return _parse_registry(url, scheme, parts.netloc, parts.path)
    if scheme in LAYOUT_SCHEMES:
        return _parse_layout(url, scheme, parts.netloc, parts.path)
    
    raise UnsupportedSchemeError(f"Unknown URL scheme '{scheme}' in url '{url}'")


def _parse_registry(url: str, scheme: str, host: str, path: str) -> RepositoryRef:
    if not host:
        raise UrlParseError(f"Registry URL '{url}' has no host")
    
    path = path.lstrip("/")
    if "@" in path:
        path, _, tag = path.partition("@")
        if ":" not in tag:
            raise UrlParseError(f"Invalid digest reference in url '{url}'")
    else:
        path, _, tag = path.partition(":")
    
    return RepositoryRef(scheme=scheme, host=host, path=path, name="", tag=tag, original=url)


def _parse_layout(url: str, scheme: str, host: str, path: str) -> RepositoryRef:
    toks = path.split(":")
    if len(toks) > 3:
        raise UrlParseError(f"Layout URL '{url}' has too many ':' separated fields")
    
    directory = toks[0].lstrip("/")
    if not directory and not host:
        raise UrlParseError(f"Layout URL '{url}' has no directory")
    
    name = toks[1] if len(toks) > 1 else ""
    tag = toks[2] if len(toks) > 2 else ""
    if tag and not name:
        raise UrlParseError(f"Layout URL '{url}' has a tag but no image name")
    
    return RepositoryRef(scheme=scheme, host=host, path=directory, name=name, tag=tag, original=url)
