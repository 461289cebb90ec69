"""
Local OCI layout backend.

``OciLayout`` reads and writes an OCI image layout directory
(``oci-layout``, ``index.json`` and ``blobs/<algo>/<hex>``).
``LayoutRepository`` implements the read side of the OciRepository protocol
on top of it; layout writes are not part of that protocol and fail
explicitly.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from ..errors import LocalIOError, NotFoundError, OperationNotSupported, ValidationError
from ..fileio import write_atomically
from ..media_types import (
    IMAGE_CONFIG_TYPES,
    OCI_IMAGE_INDEX,
    OCI_IMAGE_MANIFEST,
    OCI_INDEX_FILE,
    OCI_LAYOUT_FILE,
    OCI_LAYOUT_VERSION,
    OCI_REF_NAME_ANNOTATION,
)
from ..models import (
    Descriptor,
    ImageConfig,
    Index,
    Manifest,
    TagList,
    parse_document,
    sha256_digest,
    split_digest,
)
from ..reference import RepositoryRef
from ..settings import Settings
from .registry import verify_digest

logger = logging.getLogger(__name__)

_ENCODED_RE = re.compile(r"^[a-zA-Z0-9=_-]+$")
_DIGEST_REF_RE = re.compile(r"^[a-z0-9]+(?:[+._-][a-z0-9]+)*:[a-fA-F0-9]{32,}$")

# A chain of descriptors from a top-level index entry down to a manifest
DescriptorPath = List[Descriptor]


class OciLayout:
    """An OCI image layout directory."""
    
    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
    
    @classmethod
    def open(cls, root: Union[str, Path]) -> OciLayout:
        """
        Open an existing layout.
        
        Raises:
            NotFoundError: If ``root`` is not an OCI layout
        """
        layout = cls(root)
        for required in (OCI_LAYOUT_FILE, OCI_INDEX_FILE):
            if not (layout.root / required).is_file():
                raise NotFoundError(
                    f"Failed to open OCI Layout at directory '{layout.root}': missing {required}"
                )
        return layout
    
    @classmethod
    def create(cls, root: Union[str, Path]) -> OciLayout:
        """Create an empty layout at ``root`` (existing layouts are opened as-is)."""
        layout = cls(root)
        (layout.root / "blobs" / "sha256").mkdir(parents=True, exist_ok=True)
        if not (layout.root / OCI_LAYOUT_FILE).exists():
            marker = json.dumps({"imageLayoutVersion": OCI_LAYOUT_VERSION}).encode()
            write_atomically(layout.root / OCI_LAYOUT_FILE, marker)
        if not (layout.root / OCI_INDEX_FILE).exists():
            layout._write_index(Index())
        return layout
    
    # Index
    
    def get_index(self) -> Index:
        index_path = self.root / OCI_INDEX_FILE
        try:
            data = index_path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"Failed to get index from OCI Layout at directory '{self.root}'") from e
        except OSError as e:
            raise LocalIOError(f"Failed to read {index_path}: {e}") from e
        return parse_document(Index, data, f"index of OCI Layout at directory '{self.root}'")
    
    def _write_index(self, index: Index) -> None:
        write_atomically(self.root / OCI_INDEX_FILE, index.to_json_bytes())
    
    def list_references(self) -> List[str]:
        """Reference names recorded in the top-level index, in index order."""
        refs = []
        for desc in self.get_index().manifests:
            name = (desc.annotations or {}).get(OCI_REF_NAME_ANNOTATION)
            if name:
                refs.append(name)
        return refs
    
    def resolve_reference(self, name: str) -> List[DescriptorPath]:
        """
        Resolve a reference name to descriptor paths.
        
        Index entries annotated with ``name`` are followed through nested
        image indexes down to the manifests they contain.
        """
        paths: List[DescriptorPath] = []
        for desc in self.get_index().manifests:
            if (desc.annotations or {}).get(OCI_REF_NAME_ANNOTATION) == name:
                paths.extend(self._walk([desc]))
        logger.debug(f"Resolved '{name}' in {self.root} to {len(paths)} descriptor path(s)")
        return paths
    
    def _walk(self, path: DescriptorPath) -> Iterator[DescriptorPath]:
        desc = path[-1]
        if desc.media_type != OCI_IMAGE_INDEX:
            yield path
            return
        child = parse_document(Index, self.read_blob(desc.digest), f"image index {desc.digest}")
        for entry in child.manifests:
            yield from self._walk(path + [entry])
    
    def put_reference(self, name: str, descriptor: Descriptor) -> None:
        """Point reference ``name`` at ``descriptor``, replacing any previous entry."""
        index = self.get_index()
        annotations = dict(descriptor.annotations or {})
        annotations[OCI_REF_NAME_ANNOTATION] = name
        entry = descriptor.model_copy(update={"annotations": annotations})
        index.manifests = [
            d for d in index.manifests
            if (d.annotations or {}).get(OCI_REF_NAME_ANNOTATION) != name
        ]
        index.manifests.append(entry)
        self._write_index(index)
    
    def add_manifest(self, descriptor: Descriptor) -> None:
        """Record an untagged manifest (such as a referrer) in the top-level index."""
        index = self.get_index()
        if any(d.digest == descriptor.digest for d in index.manifests):
            return
        index.manifests.append(descriptor)
        self._write_index(index)
    
    # Blobs
    
    def blob_path(self, digest: str) -> Path:
        algo, encoded = split_digest(digest)
        if not _ENCODED_RE.match(encoded) or not _ENCODED_RE.match(algo):
            raise ValidationError(f"Invalid digest '{digest}'")
        return self.root / "blobs" / algo / encoded
    
    def has_blob(self, digest: str) -> bool:
        return self.blob_path(digest).is_file()
    
    def read_blob(self, digest: str) -> bytes:
        blob_path = self.blob_path(digest)
        try:
            return blob_path.read_bytes()
        except FileNotFoundError as e:
            raise NotFoundError(f"Failed to read OCI layer blob @ '{blob_path}'") from e
        except OSError as e:
            raise LocalIOError(f"Failed to read OCI layer blob @ '{blob_path}': {e}") from e
    
    def write_blob(self, data: bytes) -> str:
        """Store ``data`` under its sha256 digest and return the digest."""
        digest = sha256_digest(data)
        blob_path = self.blob_path(digest)
        if not blob_path.exists():
            write_atomically(blob_path, data)
        return digest


class LayoutRepository:
    """
    Read-only OciRepository backed by a local OCI layout.
    
    The layout has no referrers API, so ``get_referrers`` scans every
    manifest in the top-level index. Local layouts are small, and a scan
    keeps the layout free of extra bookkeeping files.
    """
    
    kind = "layout"
    
    def __init__(self, ref: RepositoryRef, settings: Settings):
        if ref.kind != "layout":
            raise ValueError(f"LayoutRepository cannot serve '{ref.original}'")
        self.ref = ref
        self.settings = settings
    
    def layout(self) -> OciLayout:
        return OciLayout.open(self.ref.layout_dir)
    
    # Accessors
    
    def source_url(self) -> str:
        return self.ref.original
    
    def repo_path(self) -> str:
        return self.ref.layout_dir
    
    def repo_tag(self) -> str:
        return self.ref.tag
    
    def image_name(self) -> str:
        return self.ref.name
    
    # Listing
    
    def list_tags(self) -> List[str]:
        return self.layout().list_references()
    
    def get_tag_list(self) -> TagList:
        # a URL that names an image has no repository tags
        if self.ref.name:
            return TagList()
        return TagList(name=Path(self.ref.layout_dir).name, tags=self.list_tags())
    
    def list_repositories(self) -> List[str]:
        return [self.ref.layout_dir]
    
    # Manifests
    
    def _manifest_descriptor(self, layout: OciLayout, img_ref: str) -> Descriptor:
        paths = layout.resolve_reference(img_ref)
        if len(paths) != 1:
            raise ValidationError(
                f"Bad descriptor for OCI image '{img_ref}' in OCI Layout at directory "
                f"'{layout.root}': {len(paths)} matches, expected 1"
            )
        return paths[0][-1]
    
    def get_manifest(self, reference: Optional[str] = None) -> Tuple[Manifest, bytes]:
        layout = self.layout()
        
        if reference and _DIGEST_REF_RE.match(reference):
            digest = reference
        else:
            img_ref = reference or self.ref.image_ref
            if not img_ref:
                raise ValidationError(f"'{self.ref.original}' names a layout, not an image")
            desc = self._manifest_descriptor(layout, img_ref)
            if desc.media_type != OCI_IMAGE_MANIFEST:
                raise ValidationError(
                    f"Descriptor does not point to a manifest: '{desc.media_type}' for OCI image '{img_ref}'"
                )
            digest = desc.digest
        
        raw = layout.read_blob(digest)
        verify_digest(self.settings, digest, raw, f"manifest {digest}")
        manifest = parse_document(Manifest, raw, f"OCI Manifest blob '{digest}'")
        if manifest.media_type not in (None, OCI_IMAGE_MANIFEST):
            raise ValidationError(f"Blob '{digest}' is a '{manifest.media_type}', not an image manifest")
        return manifest, raw
    
    def manifest_exists(self, reference: Optional[str] = None) -> bool:
        try:
            layout = self.layout()
        except NotFoundError:
            return False
        if reference and _DIGEST_REF_RE.match(reference):
            return layout.has_blob(reference)
        img_ref = reference or self.ref.image_ref
        return bool(img_ref) and len(layout.resolve_reference(img_ref)) == 1
    
    def get_image_config(self, descriptor: Descriptor) -> ImageConfig:
        if descriptor.media_type not in IMAGE_CONFIG_TYPES:
            raise ValidationError(f"bad image config type: {descriptor.media_type}")
        data = self.get_blob(descriptor)
        return parse_document(ImageConfig, data, f"image config {descriptor.digest}")
    
    def get_referrers(self, descriptor: Descriptor) -> Index:
        """
        Emulate the referrers API with a linear scan of the index.
        
        Every image manifest in the top-level index other than the queried
        one is fetched and kept when its subject digest matches.
        """
        layout = self.layout()
        refs = Index()
        for entry in layout.get_index().manifests:
            if entry.media_type != OCI_IMAGE_MANIFEST or entry.digest == descriptor.digest:
                continue
            
            blob = self.get_blob(entry)
            candidate = parse_document(Manifest, blob, f"index manifest blob {entry.digest}")
            if candidate.subject is not None and candidate.subject.digest == descriptor.digest:
                logger.debug(f"{entry.digest} ({candidate.artifact_type}) refers to {descriptor.digest}")
                refs.manifests.append(Descriptor(
                    media_type=entry.media_type,
                    digest=entry.digest,
                    size=entry.size,
                    artifact_type=candidate.artifact_type,
                ))
        return refs
    
    # Blobs
    
    def get_blob(self, descriptor: Descriptor) -> bytes:
        data = self.layout().read_blob(descriptor.digest)
        verify_digest(self.settings, descriptor.digest, data, f"blob {descriptor.digest}")
        return data
    
    def blob_exists(self, descriptor: Descriptor) -> bool:
        return self.layout().has_blob(descriptor.digest)
    
    # Writes
    
    def _unsupported(self, operation: str) -> OperationNotSupported:
        return OperationNotSupported(
            f"{operation} is not supported on OCI layout '{self.ref.layout_dir}'"
        )
    
    def put_blob(self, descriptor: Descriptor, data: bytes) -> None:
        raise self._unsupported("put_blob")
    
    def put_manifest(self, manifest: Manifest, payload: Optional[bytes] = None) -> str:
        raise self._unsupported("put_manifest")
    
    def put_artifact(self, name: str, artifact_type: str, blob: bytes) -> str:
        raise self._unsupported("put_artifact")


__all__ = ["OciLayout", "LayoutRepository", "DescriptorPath"]
