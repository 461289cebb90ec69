"""
Storage backends.

``open_repository`` parses a repository URL and returns the backend that
serves it: RegistryRepository for registry schemes, LayoutRepository for
local OCI layouts.
"""
from .base import OciRepository
from .factory import open_repository
from .layout import LayoutRepository, OciLayout
from .registry import RegistryRepository

__all__ = [
    "OciRepository",
    "open_repository",
    "LayoutRepository",
    "OciLayout",
    "RegistryRepository",
]
