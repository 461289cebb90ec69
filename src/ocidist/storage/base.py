"""
OCI repository protocol definition.

Defines the single capability interface shared by the remote registry
backend and the local layout backend. A backend is bound to one
RepositoryRef at construction; callers never branch on which backend
they hold.
"""
from __future__ import annotations

from typing import List, Literal, Optional, Protocol, Tuple, runtime_checkable

from ..models import Descriptor, ImageConfig, Index, Manifest, TagList


@runtime_checkable
class OciRepository(Protocol):
    """
    Repository-scoped OCI operations.
    
    Read operations are available on every backend. Write operations
    (put_blob, put_manifest, put_artifact) raise OperationNotSupported on
    backends that cannot write.
    """
    
    @property
    def kind(self) -> Literal["registry", "layout"]:
        """Backend family serving this repository."""
        ...
    
    # Accessors
    
    def source_url(self) -> str:
        """Original URL this repository was opened from."""
        ...
    
    def repo_path(self) -> str:
        """Repository path (registry) or layout directory (layout)."""
        ...
    
    def repo_tag(self) -> str:
        """Tag or digest from the URL, empty when none was given."""
        ...
    
    def image_name(self) -> str:
        """Human name of the image this URL points at."""
        ...
    
    # Listing
    
    def list_tags(self) -> List[str]:
        """
        List tags of the repository.
        
        Returns:
            Ordered tag list; empty when the repository has no tags
        """
        ...
    
    def list_repositories(self) -> List[str]:
        """List repositories served by the backend."""
        ...
    
    def get_tag_list(self) -> TagList:
        """Tag list document (name + tags) of the repository."""
        ...
    
    # Manifests and blobs
    
    def get_manifest(self, reference: Optional[str] = None) -> Tuple[Manifest, bytes]:
        """
        Fetch an image manifest.
        
        Args:
            reference: Tag or digest; defaults to the URL's tag
            
        Returns:
            (parsed manifest, raw manifest bytes)
            
        Raises:
            NotFoundError: If the manifest doesn't exist
            ValidationError: If the document is not an image manifest
        """
        ...
    
    def manifest_exists(self, reference: Optional[str] = None) -> bool:
        """True when a manifest exists at ``reference`` (default: the URL's tag)."""
        ...
    
    def get_image_config(self, descriptor: Descriptor) -> ImageConfig:
        """
        Fetch and parse the image config addressed by ``descriptor``.
        
        Raises:
            ValidationError: If the descriptor is not an image config
        """
        ...
    
    def get_referrers(self, descriptor: Descriptor) -> Index:
        """Index of the manifests whose subject is ``descriptor.digest``."""
        ...
    
    def get_blob(self, descriptor: Descriptor) -> bytes:
        """Fetch blob content by digest."""
        ...
    
    def blob_exists(self, descriptor: Descriptor) -> bool:
        """True when the blob is present."""
        ...
    
    def put_blob(self, descriptor: Descriptor, data: bytes) -> None:
        """Upload a blob; no-op when it already exists."""
        ...
    
    def put_manifest(self, manifest: Manifest, payload: Optional[bytes] = None) -> str:
        """
        Push a manifest and return its digest.
        
        Args:
            manifest: Manifest to push
            payload: Exact bytes to push; serialized from ``manifest`` if None
        """
        ...
    
    def put_artifact(self, name: str, artifact_type: str, blob: bytes) -> str:
        """Publish ``blob`` as a typed artifact and return the manifest digest."""
        ...


__all__ = ["OciRepository"]
