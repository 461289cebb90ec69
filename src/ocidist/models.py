"""
Data models for OCI wire documents.

These Pydantic models provide type safety and validation for the documents
exchanged with registries and stored in local layouts: descriptors, image
manifests, image indexes, tag and repository lists, and image configs.
"""
from __future__ import annotations

import hashlib
import json
import re
from typing import Dict, List, Optional, Type, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError
from .media_types import OCI_IMAGE_INDEX, OCI_IMAGE_MANIFEST

# Digest grammar from the OCI image spec (algorithm ":" encoded)
_DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[+._-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$")

M = TypeVar("M", bound=BaseModel)


def sha256_digest(data: bytes) -> str:
    """Return the ``sha256:<hex>`` digest of ``data``."""
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def split_digest(digest: str) -> tuple[str, str]:
    """
    Split a digest into algorithm and encoded hash.
    
    Raises:
        ValidationError: If the digest does not follow ``algo:hex``
    """
    algo, sep, encoded = digest.partition(":")
    if not sep or not algo or not encoded:
        raise ValidationError(f"Failed to split digest '{digest}' into algorithm and hash")
    return algo, encoded


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    
    def to_json_bytes(self) -> bytes:
        """Serialize to compact JSON, omitting unset optional fields."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        return json.dumps(data, separators=(',', ':')).encode('utf-8')


class Descriptor(_Document):
    """Content pointer: media type, digest and size of the referenced bytes."""
    media_type: str = Field(..., alias="mediaType")
    digest: str = Field(..., description="Content digest (sha256:...)")
    size: int = Field(..., ge=0, description="Size of the referenced bytes")
    artifact_type: Optional[str] = Field(default=None, alias="artifactType")
    annotations: Optional[Dict[str, str]] = None
    
    @field_validator("digest")
    @classmethod
    def validate_digest(cls, v):
        if not _DIGEST_RE.match(v):
            raise ValueError(f"Invalid digest format: {v}")
        return v
    
    @classmethod
    def for_bytes(cls, media_type: str, data: bytes,
                  annotations: Optional[Dict[str, str]] = None) -> Descriptor:
        """Build a descriptor addressing ``data``."""
        return cls(
            media_type=media_type,
            digest=sha256_digest(data),
            size=len(data),
            annotations=annotations,
        )


class Manifest(_Document):
    """
    OCI image manifest.
    
    A manifest whose ``subject`` points at another manifest's digest is a
    referrer of that manifest.
    """
    schema_version: int = Field(default=2, alias="schemaVersion")
    media_type: Optional[str] = Field(default=OCI_IMAGE_MANIFEST, alias="mediaType")
    artifact_type: Optional[str] = Field(default=None, alias="artifactType")
    config: Descriptor
    layers: List[Descriptor] = Field(default_factory=list)
    subject: Optional[Descriptor] = None
    annotations: Optional[Dict[str, str]] = None


class Index(_Document):
    """OCI image index; also the response body of the referrers API."""
    schema_version: int = Field(default=2, alias="schemaVersion")
    media_type: Optional[str] = Field(default=OCI_IMAGE_INDEX, alias="mediaType")
    manifests: List[Descriptor] = Field(default_factory=list)
    annotations: Optional[Dict[str, str]] = None
    
    @field_validator("manifests", mode="before")
    @classmethod
    def null_manifests(cls, v):
        return [] if v is None else v


class TagList(_Document):
    """Response of the tags list endpoint."""
    name: str = ""
    tags: List[str] = Field(default_factory=list)
    
    @field_validator("tags", mode="before")
    @classmethod
    def null_tags(cls, v):
        # registries answer {"tags": null} for a repository without tags
        return [] if v is None else v


class RepositoryList(_Document):
    """Response of the catalog endpoint."""
    repositories: List[str] = Field(default_factory=list)
    
    @field_validator("repositories", mode="before")
    @classmethod
    def null_repositories(cls, v):
        return [] if v is None else v


class ImageRuntimeConfig(BaseModel):
    """Execution parameters section of an image config."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")
    
    env: Optional[List[str]] = Field(default=None, alias="Env")
    labels: Optional[Dict[str, str]] = Field(default=None, alias="Labels")
    entrypoint: Optional[List[str]] = Field(default=None, alias="Entrypoint")
    cmd: Optional[List[str]] = Field(default=None, alias="Cmd")


class ImageConfig(BaseModel):
    """OCI image configuration blob."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")
    
    created: Optional[str] = None
    architecture: str = ""
    os: str = ""
    config: Optional[ImageRuntimeConfig] = None


def parse_document(model: Type[M], data: bytes, what: str) -> M:
    """
    Parse JSON bytes into ``model``.
    
    Args:
        model: Pydantic model class
        data: Raw JSON bytes
        what: Human description used in error messages
        
    Raises:
        ValidationError: If the bytes are not valid JSON or do not fit the model
    """
    try:
        return model.model_validate_json(data)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Failed to parse {what}: {e}") from e


__all__ = [
    "sha256_digest",
    "split_digest",
    "Descriptor",
    "Manifest",
    "Index",
    "TagList",
    "RepositoryList",
    "ImageRuntimeConfig",
    "ImageConfig",
    "parse_document",
]
