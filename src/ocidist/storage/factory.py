"""
Repository factory.

Selects the backend once, from the parsed URL scheme. Callers hold an
OciRepository and never branch on which backend serves it.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..reference import parse_reference
from ..settings import Settings
from .base import OciRepository
from .layout import LayoutRepository
from .registry import RegistryRepository

logger = logging.getLogger(__name__)


def open_repository(url: str, settings: Settings, *,
                    transport: Optional[httpx.BaseTransport] = None) -> OciRepository:
    """
    Create the repository backend for ``url``.
    
    Args:
        url: Repository URL (``ocidist://``, ``docker://``, ``http://``,
            ``https://`` or ``oci://``)
        settings: Backend configuration
        transport: httpx transport for registry backends (tests inject a
            MockTransport); ignored by layouts
        
    Returns:
        Backend bound to the parsed reference
        
    Raises:
        UrlParseError: If the URL is malformed
        UnsupportedSchemeError: If no backend serves the scheme
        
    Examples:
        >>> repo = open_repository("ocidist://localhost:5000/myrepo/myimage:v2.1", settings)
        >>> repo.kind
        'registry'
    """
    ref = parse_reference(url)
    logger.debug(f"Opening {ref.kind} repository for {url}")
    
    if ref.kind == "layout":
        return LayoutRepository(ref, settings)
    return RegistryRepository(ref, settings, transport=transport)


__all__ = ["open_repository"]
