"""
Image copy.

Copies one image manifest with its config and layer blobs from a source
repository to a destination registry or local OCI layout. The manifest is
written as the exact bytes fetched from the source, so the image keeps its
digest.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx

from .errors import UnsupportedSchemeError, ValidationError
from .media_types import OCI_IMAGE_MANIFEST
from .models import Descriptor, Manifest, sha256_digest
from .reference import RepositoryRef, parse_reference
from .settings import Settings
from .storage.factory import open_repository
from .storage.layout import OciLayout

logger = logging.getLogger(__name__)

SOURCE_SCHEMES = ("ocidist", "docker", "oci")
DEST_SCHEMES = ("ocidist", "docker", "oci")


@dataclass(frozen=True)
class CopyResult:
    """Outcome of a successful copy."""
    source: str
    dest: str
    digest: str
    blobs: int


def _check_scheme(url: str, allowed: tuple, side: str) -> RepositoryRef:
    ref = parse_reference(url)
    if ref.scheme not in allowed:
        raise UnsupportedSchemeError(
            f"{side} url has unsupported scheme '{ref.scheme}', must be one of "
            f"{', '.join(repr(s) for s in allowed)}"
        )
    return ref


def _blob_descriptors(manifest: Manifest) -> List[Descriptor]:
    return [manifest.config, *manifest.layers]


def copy_image(src: str, dest: str, settings: Settings, *,
               src_tls_verify: Optional[bool] = None,
               dest_tls_verify: Optional[bool] = None,
               transport: Optional[httpx.BaseTransport] = None) -> CopyResult:
    """
    Copy the image at ``src`` to ``dest``.
    
    Args:
        src: Source URL (``ocidist``, ``docker`` or ``oci`` scheme)
        dest: Destination URL (``ocidist``, ``docker`` or ``oci`` scheme); must
            name a tag
        settings: Base settings
        src_tls_verify: TLS verification for the source (defaults to settings)
        dest_tls_verify: TLS verification for the destination (defaults to settings)
        transport: httpx transport for registry sides
    
    Returns:
        CopyResult with the manifest digest and the number of blobs copied
    
    Raises:
        UnsupportedSchemeError: If either URL uses a scheme copy does not serve
        ValidationError: If the destination does not name an image
    """
    _check_scheme(src, SOURCE_SCHEMES, "source")
    dest_ref = _check_scheme(dest, DEST_SCHEMES, "destination")
    
    src_settings = settings
    if src_tls_verify is not None:
        src_settings = dataclasses.replace(settings, tls_verify=src_tls_verify)
    dest_settings = settings
    if dest_tls_verify is not None:
        dest_settings = dataclasses.replace(settings, tls_verify=dest_tls_verify)
    
    source = open_repository(src, src_settings, transport=transport)
    manifest, raw = source.get_manifest()
    digest = sha256_digest(raw)
    descriptors = _blob_descriptors(manifest)
    logger.debug(f"Copying {src} ({digest}, {len(descriptors)} blobs) to {dest}")
    
    if dest_ref.kind == "layout":
        write = _layout_writer(dest_ref, manifest, raw)
    else:
        write = _registry_writer(dest, dest_settings, transport, manifest, raw)
    
    for desc in descriptors:
        write(desc, source.get_blob(desc))
    write(None, raw)
    
    logger.debug(f"Copied {src} to {dest} @ {digest}")
    return CopyResult(source=src, dest=dest, digest=digest, blobs=len(descriptors))


def _registry_writer(dest: str, settings: Settings, transport: Optional[httpx.BaseTransport],
                     manifest: Manifest, raw: bytes) -> Callable[[Optional[Descriptor], bytes], None]:
    target = open_repository(dest, settings, transport=transport)
    
    def write(desc: Optional[Descriptor], data: bytes) -> None:
        if desc is None:
            target.put_manifest(manifest, payload=data)
        else:
            target.put_blob(desc, data)
    
    return write


def _layout_writer(dest_ref: RepositoryRef, manifest: Manifest,
                   raw: bytes) -> Callable[[Optional[Descriptor], bytes], None]:
    if not dest_ref.name:
        raise ValidationError(f"Destination '{dest_ref.original}' must name an image (oci://dir:image[:tag])")
    layout = OciLayout.create(dest_ref.layout_dir)
    
    def write(desc: Optional[Descriptor], data: bytes) -> None:
        digest = layout.write_blob(data)
        if desc is None:
            layout.put_reference(dest_ref.image_ref, Descriptor(
                media_type=manifest.media_type or OCI_IMAGE_MANIFEST,
                digest=digest,
                size=len(raw),
            ))
        elif digest != desc.digest:
            raise ValidationError(f"Blob {desc.digest} hashed to {digest} while copying to {dest_ref.original}")
    
    return write


__all__ = ["CopyResult", "copy_image", "SOURCE_SCHEMES", "DEST_SCHEMES"]
