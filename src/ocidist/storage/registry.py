"""
Registry backend.

Implements the OciRepository protocol against a remote registry speaking the
OCI Distribution API. Every operation opens its own RegistryClient, so the
backend holds nothing but its immutable reference and settings.
"""
from __future__ import annotations

import logging
import posixpath
from typing import List, Optional, Tuple

import httpx

from ..errors import DigestMismatchError, NotFoundError, ProtocolError, ValidationError
from ..media_types import (
    ACCEPTED_MANIFEST_TYPES,
    DOCKER_MANIFEST_LIST,
    IMAGE_CONFIG_TYPES,
    OCI_GENERIC_LAYER,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
)
from ..models import (
    Descriptor,
    ImageConfig,
    Index,
    Manifest,
    RepositoryList,
    TagList,
    parse_document,
    sha256_digest,
)
from ..publisher import put_artifact
from ..reference import RepositoryRef
from ..settings import Settings
from .registry_http import RegistryClient

logger = logging.getLogger(__name__)

_INDEX_TYPES = (OCI_IMAGE_INDEX, DOCKER_MANIFEST_LIST)


def _raise_for_status(response: httpx.Response, what: str, expected: Optional[int] = None) -> None:
    """
    Map an HTTP status onto the error taxonomy.
    
    Args:
        response: Registry response
        what: Operation description for the error message
        expected: Exact status required; any 2xx when None
        
    Raises:
        NotFoundError: On 404 when any 2xx would have been accepted
        ProtocolError: On any other unexpected status
    """
    status = response.status_code
    if expected is None:
        if 200 <= status < 300:
            return
        if status == 404:
            raise NotFoundError(f"Not found: {what}")
    elif status == expected:
        return
    raise ProtocolError(f"Failed to {what}, StatusCode: {status}", status=status)


def verify_digest(settings: Settings, digest: str, data: bytes, what: str) -> None:
    """
    Check that ``data`` hashes to ``digest`` when digest verification is on.
    
    Only sha256 digests can be checked; other algorithms pass through.
    
    Raises:
        DigestMismatchError: If the content does not match
    """
    if not settings.verify_digests or not digest.startswith("sha256:"):
        return
    actual = sha256_digest(data)
    if actual != digest:
        raise DigestMismatchError(
            f"Digest mismatch for {what}: expected {digest}, got {actual}",
            expected=digest, actual=actual,
        )


class RegistryRepository:
    """
    OCI Distribution API backend.
    
    Endpoints used:
        GET       /v2/<name>/tags/list
        GET/HEAD  /v2/<name>/manifests/<reference>
        PUT       /v2/<name>/manifests/<reference>
        GET/HEAD  /v2/<name>/blobs/<digest>
        POST      /v2/<name>/blobs/uploads/
        PUT       <location>?digest=<digest>
        GET       /v2/<name>/referrers/<digest>
        GET       /v2/_catalog
    """
    
    kind = "registry"
    
    def __init__(self, ref: RepositoryRef, settings: Settings,
                 transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize registry backend.
        
        Args:
            ref: Parsed registry reference
            settings: TLS, timeout, retry and digest-verification settings
            transport: Optional httpx transport handed to every client
        """
        if ref.kind != "registry":
            raise ValueError(f"RegistryRepository cannot serve '{ref.original}'")
        self.ref = ref
        self.settings = settings
        self._transport = transport
    
    def base_url(self) -> str:
        return self.ref.base_url(self.settings.tls_verify)
    
    def _client(self) -> RegistryClient:
        return RegistryClient(self.base_url(), self.settings, transport=self._transport)
    
    # Accessors
    
    def source_url(self) -> str:
        return self.ref.original
    
    def repo_path(self) -> str:
        return self.ref.path
    
    def repo_tag(self) -> str:
        return self.ref.tag
    
    def image_name(self) -> str:
        return posixpath.join(self.ref.host, self.ref.path)
    
    def _reference(self, reference: Optional[str]) -> str:
        ref = reference or self.ref.tag
        if not ref:
            raise ValidationError(f"'{self.ref.original}' names a repository, not an image; a tag or digest is required")
        return ref
    
    # Listing
    
    def get_tag_list(self) -> TagList:
        with self._client() as client:
            response = client.request("GET", "/v2/<name>/tags/list", name=self.ref.path)
        _raise_for_status(response, f"list tags of {self.ref.path}")
        return parse_document(TagList, response.content, f"tag list of {self.ref.path}")
    
    def list_tags(self) -> List[str]:
        return self.get_tag_list().tags
    
    def list_repositories(self) -> List[str]:
        with self._client() as client:
            response = client.request("GET", "/v2/_catalog")
        _raise_for_status(response, f"list repositories of {self.base_url()}")
        return parse_document(RepositoryList, response.content, "repository catalog").repositories
    
    # Manifests
    
    def get_manifest(self, reference: Optional[str] = None) -> Tuple[Manifest, bytes]:
        """
        GET manifest by tag or digest.
        
        The raw bytes are returned untouched so callers can recompute the
        manifest digest from exactly what the registry served.
        """
        ref = self._reference(reference)
        what = f"manifest {self.ref.path}:{ref}"
        
        with self._client() as client:
            response = client.request(
                "GET", "/v2/<name>/manifests/<reference>",
                name=self.ref.path, reference=ref,
                headers={"Accept": ", ".join(ACCEPTED_MANIFEST_TYPES)},
            )
        _raise_for_status(response, f"get {what}")
        
        raw = response.content
        if ":" in ref:
            verify_digest(self.settings, ref, raw, what)
        
        content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
        if content_type in _INDEX_TYPES:
            raise ValidationError(f"{what} is an image index ({content_type}), not an image manifest")
        
        manifest = parse_document(Manifest, raw, what)
        if manifest.media_type in _INDEX_TYPES:
            raise ValidationError(f"{what} is an image index ({manifest.media_type}), not an image manifest")
        
        logger.debug(f"Fetched {what} ({len(raw)} bytes, {sha256_digest(raw)})")
        return manifest, raw
    
    def manifest_exists(self, reference: Optional[str] = None) -> bool:
        ref = self._reference(reference)
        with self._client() as client:
            response = client.request(
                "HEAD", "/v2/<name>/manifests/<reference>",
                name=self.ref.path, reference=ref,
                headers={"Accept": ", ".join(ACCEPTED_MANIFEST_TYPES)},
            )
        return response.status_code == 200
    
    def put_manifest(self, manifest: Manifest, payload: Optional[bytes] = None) -> str:
        """
        PUT manifest and return its digest.
        
        A manifest carrying a subject is pushed by its own digest: referrers
        are not tag-addressable, and pushing by tag would move the tag off
        the subject.
        
        Raises:
            ProtocolError: Unless the registry answers exactly 201
        """
        if payload is None:
            payload = manifest.to_json_bytes()
        digest = sha256_digest(payload)
        
        if manifest.subject is not None:
            ref = digest
            logger.debug(f"Manifest has subject {manifest.subject.digest}, pushing by digest {digest}")
        else:
            ref = self._reference(None)
        
        with self._client() as client:
            response = client.request(
                "PUT", "/v2/<name>/manifests/<reference>",
                name=self.ref.path, reference=ref,
                headers={"Content-Type": manifest.media_type or OCI_IMAGE_MANIFEST},
                content=payload,
            )
        _raise_for_status(response, f"PUT manifest {self.ref.path}:{ref}", expected=201)
        
        subject_header = response.headers.get("OCI-Subject")
        if subject_header:
            logger.debug(f"Registry indexed referrer {digest} of {subject_header}")
        return digest
    
    # Blobs
    
    def blob_exists(self, descriptor: Descriptor) -> bool:
        """HEAD blob; anything but 200 counts as absent."""
        with self._client() as client:
            response = client.request(
                "HEAD", "/v2/<name>/blobs/<digest>",
                name=self.ref.path, digest=descriptor.digest,
            )
        return response.status_code == 200
    
    def put_blob(self, descriptor: Descriptor, data: bytes) -> None:
        """
        Upload a blob in a single monolithic PUT.
        
        Short-circuits when the registry already has the blob.
        
        Raises:
            ValidationError: If ``data`` doesn't match the descriptor
            ProtocolError: If the upload session or the PUT fails
        """
        if len(data) != descriptor.size:
            raise ValidationError(
                f"Blob {descriptor.digest} is {len(data)} bytes, descriptor says {descriptor.size}"
            )
        verify_digest(self.settings, descriptor.digest, data, f"blob {descriptor.digest}")
        
        if self.blob_exists(descriptor):
            logger.debug(f"Blob {descriptor.digest} already exists in {self.ref.path}, skipping upload")
            return
        
        with self._client() as client:
            response = client.request("POST", "/v2/<name>/blobs/uploads/", name=self.ref.path)
            _raise_for_status(response, f"start blob upload in {self.ref.path}")
            location = response.headers.get("Location")
            if not location:
                raise ProtocolError(
                    f"Registry did not return an upload Location for {self.ref.path}",
                    status=response.status_code,
                )
            logger.debug(f"Uploading {descriptor.digest} ({descriptor.size} bytes) to {location}")
            
            response = client.request(
                "PUT", location,
                params={"digest": descriptor.digest},
                headers={
                    "Content-Type": OCI_GENERIC_LAYER,
                    "Content-Length": str(descriptor.size),
                },
                content=data,
            )
        _raise_for_status(response, f"PUT blob {descriptor.digest}", expected=201)
    
    def get_blob(self, descriptor: Descriptor) -> bytes:
        with self._client() as client:
            response = client.request(
                "GET", "/v2/<name>/blobs/<digest>",
                name=self.ref.path, digest=descriptor.digest,
            )
        what = f"blob {self.ref.path}@{descriptor.digest}"
        _raise_for_status(response, f"get {what}")
        data = response.content
        verify_digest(self.settings, descriptor.digest, data, what)
        return data
    
    def get_image_config(self, descriptor: Descriptor) -> ImageConfig:
        if descriptor.media_type not in IMAGE_CONFIG_TYPES:
            raise ValidationError(f"bad image config type: {descriptor.media_type}")
        data = self.get_blob(descriptor)
        return parse_document(ImageConfig, data, f"image config {descriptor.digest}")
    
    # Referrers
    
    def get_referrers(self, descriptor: Descriptor) -> Index:
        with self._client() as client:
            response = client.request(
                "GET", "/v2/<name>/referrers/<digest>",
                name=self.ref.path, digest=descriptor.digest,
            )
        _raise_for_status(response, f"get referrers of {self.ref.path}@{descriptor.digest}")
        return parse_document(Index, response.content, f"referrers of {descriptor.digest}")
    
    # Artifacts
    
    def put_artifact(self, name: str, artifact_type: str, blob: bytes) -> str:
        return put_artifact(self, name, artifact_type, blob)


__all__ = ["RegistryRepository", "verify_digest"]
