"""
OCI media types and constants.

Single source of truth for all OCI-related media types and annotations.
"""
from __future__ import annotations

# Manifest and index types
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"

# Manifest types we ask registries for, in order of preference
ACCEPTED_MANIFEST_TYPES = [
    OCI_IMAGE_MANIFEST,
    OCI_IMAGE_INDEX,
    DOCKER_MANIFEST_V2,
    DOCKER_MANIFEST_LIST,
]

# Image configuration types
OCI_IMAGE_CONFIG = "application/vnd.oci.image.config.v1+json"
DOCKER_IMAGE_CONFIG = "application/vnd.docker.container.image.v1+json"
IMAGE_CONFIG_TYPES = (OCI_IMAGE_CONFIG, DOCKER_IMAGE_CONFIG)

# Empty config for artifacts (always {})
OCI_EMPTY_CONFIG = "application/vnd.oci.empty.v1+json"
OCI_EMPTY_CONFIG_BYTES = b"{}"
OCI_EMPTY_CONFIG_DIGEST = "sha256:44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a"
OCI_EMPTY_CONFIG_SIZE = 2

# Layer type for raw artifact payloads
OCI_GENERIC_LAYER = "application/octet-stream"

# Annotations
OCI_TITLE_ANNOTATION = "org.opencontainers.image.title"
OCI_REF_NAME_ANNOTATION = "org.opencontainers.image.ref.name"

# Local layout files
OCI_LAYOUT_FILE = "oci-layout"
OCI_LAYOUT_VERSION = "1.0.0"
OCI_INDEX_FILE = "index.json"


__all__ = [
    "OCI_IMAGE_MANIFEST",
    "OCI_IMAGE_INDEX",
    "DOCKER_MANIFEST_V2",
    "DOCKER_MANIFEST_LIST",
    "ACCEPTED_MANIFEST_TYPES",
    "OCI_IMAGE_CONFIG",
    "DOCKER_IMAGE_CONFIG",
    "IMAGE_CONFIG_TYPES",
    "OCI_EMPTY_CONFIG",
    "OCI_EMPTY_CONFIG_BYTES",
    "OCI_EMPTY_CONFIG_DIGEST",
    "OCI_EMPTY_CONFIG_SIZE",
    "OCI_GENERIC_LAYER",
    "OCI_TITLE_ANNOTATION",
    "OCI_REF_NAME_ANNOTATION",
    "OCI_LAYOUT_FILE",
    "OCI_LAYOUT_VERSION",
    "OCI_INDEX_FILE",
]
