"""
Artifact publishing.

Wraps an arbitrary byte blob as a typed OCI artifact: an image manifest
with the empty config, a single layer holding the blob, and an
``artifactType``. When a manifest already exists at the target reference
the new manifest links to it through ``subject``, making it a referrer.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .media_types import (
    OCI_EMPTY_CONFIG,
    OCI_EMPTY_CONFIG_BYTES,
    OCI_GENERIC_LAYER,
    OCI_IMAGE_MANIFEST,
    OCI_TITLE_ANNOTATION,
)
from .models import Descriptor, Manifest, sha256_digest

if TYPE_CHECKING:
    from .storage.base import OciRepository

logger = logging.getLogger(__name__)


def empty_config_descriptor() -> Descriptor:
    """Descriptor of the two-byte ``{}`` config used by artifacts."""
    return Descriptor.for_bytes(OCI_EMPTY_CONFIG, OCI_EMPTY_CONFIG_BYTES)


def put_artifact(repo: OciRepository, name: str, artifact_type: str, blob: bytes, *,
                 link_subject: bool = True) -> str:
    """
    Publish ``blob`` as an artifact of ``artifact_type`` at the repository's reference.
    
    Steps:
    1. Upload the empty config blob, then the artifact blob (both are no-ops
       when the registry already has them)
    2. Build a manifest: empty config, one layer titled ``name``,
       ``artifactType`` = ``artifact_type``
    3. If a manifest already exists at the reference, set it as ``subject``
    4. Push the manifest (by digest when it has a subject)
    
    Nothing is rolled back on failure; uploaded blobs are content-addressed
    and reused by the next attempt.
    
    Args:
        repo: Target repository
        name: Display title of the artifact (``org.opencontainers.image.title``)
        artifact_type: Artifact media type
        blob: Artifact payload
        link_subject: Link to the manifest currently at the reference
        
    Returns:
        Digest of the pushed manifest
    """
    logger.debug(f"Publishing artifact {name} ({artifact_type}, {len(blob)} bytes) to {repo.source_url()}")
    
    config = empty_config_descriptor()
    layer = Descriptor.for_bytes(
        OCI_GENERIC_LAYER, blob, annotations={OCI_TITLE_ANNOTATION: name}
    )
    
    repo.put_blob(config, OCI_EMPTY_CONFIG_BYTES)
    repo.put_blob(layer, blob)
    logger.debug(f"Uploaded artifact blob {layer.digest}")
    
    manifest = Manifest(
        media_type=OCI_IMAGE_MANIFEST,
        artifact_type=artifact_type,
        config=config,
        layers=[layer],
    )
    
    if link_subject and repo.manifest_exists():
        parent, parent_bytes = repo.get_manifest()
        manifest.subject = Descriptor(
            media_type=parent.media_type or OCI_IMAGE_MANIFEST,
            digest=sha256_digest(parent_bytes),
            size=len(parent_bytes),
        )
        logger.debug(f"Existing manifest at {repo.source_url()}, linking subject {manifest.subject.digest}")
    else:
        logger.debug(f"No subject linked for {name}")
    
    return repo.put_manifest(manifest)


__all__ = ["empty_config_descriptor", "put_artifact"]
