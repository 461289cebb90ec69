"""
ocidist - OCI distribution toolkit.

Fetch and publish content-addressable artifacts in remote registries and
local OCI layouts through one repository interface, and sign, publish and
verify SOCI bundles on top of it.
"""
__version__ = "0.1.0"

__all__ = ["__version__"]
