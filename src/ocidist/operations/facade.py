"""
Operations Facade - Application service layer.

Provides a clean interface between CLI and the repository backends,
centralizing command orchestration, configuration, and policy decisions
while keeping CLI commands thin and testable.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from ..copy import CopyResult, copy_image
from ..models import sha256_digest
from ..settings import Settings
from ..signing import Signer
from ..soci import PublishedBundle, SignedBundle, SociInfo, SociRef, build_bundle, publish_bundle
from ..storage.base import OciRepository
from ..storage.factory import open_repository


class InspectOutput(BaseModel):
    """Image summary printed by ``inspect``."""
    model_config = ConfigDict(populate_by_name=True)
    
    name: Optional[str] = Field(default=None, alias="Name")
    digest: str = Field(..., alias="Digest")
    repo_tags: List[str] = Field(default_factory=list, alias="RepoTags")
    created: Optional[str] = Field(default=None, alias="Created")
    labels: Optional[Dict[str, str]] = Field(default=None, alias="Labels")
    architecture: str = Field(default="", alias="Architecture")
    os: str = Field(default="", alias="Os")
    layers: List[str] = Field(default_factory=list, alias="Layers")
    env: Optional[List[str]] = Field(default=None, alias="Env")


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.
    
    Centralizes policy decisions that are not repository settings.
    """
    verify_on_inspect: bool = True     # soci inspect runs verification
    bundle_dir: str = "."              # Where soci bundle writes <name>.soci
    verbose: bool = False              # Show detailed output


class Operations:
    """
    Application service facade for CLI operations.
    
    Design Notes: Operations Facade
    
    This facade separates CLI parsing/formatting from the repository
    backends. It centralizes:
    
    - Command orchestration (one method per CLI verb)
    - Settings threading (every backend is built from the same Settings)
    - Transport and signer injection (enables testing with fakes)
    - Error boundary (exceptions bubble up for central mapping)
    
    The facade is stateless except for injected config, settings, transport
    and signer.
    """
    
    def __init__(self, config: OpsConfig, settings: Optional[Settings] = None,
                 transport: Optional[httpx.BaseTransport] = None,
                 signer: Optional[Signer] = None):
        """
        Initialize Operations facade.
        
        Args:
            config: Configuration settings
            settings: Backend settings (if None, loaded from environment)
            transport: httpx transport for registry backends
            signer: Signing capability (defaults to CryptographySigner)
        """
        self.cfg = config
        
        if settings is None:
            from ..settings import create_settings_from_env
            settings = create_settings_from_env()
        self.settings = settings
        self.transport = transport
        self.signer = signer
    
    def open(self, url: str) -> OciRepository:
        return open_repository(url, self.settings, transport=self.transport)
    
    def images(self, url: str, *, tags_only: bool = False) -> List[str]:
        """
        List image versions at ``url``.
        
        Returns:
            Tags, or ``<repo path>:<tag>`` lines unless ``tags_only``
        """
        repo = self.open(url)
        tags = repo.list_tags()
        if tags_only:
            return tags
        return [f"{repo.repo_path()}:{tag}" for tag in tags]
    
    def repos(self, url: str) -> List[str]:
        return self.open(url).list_repositories()
    
    def inspect(self, url: str) -> InspectOutput:
        """
        Summarize the image at ``url``: manifest digest, tags, config and layers.
        """
        repo = self.open(url)
        manifest, raw = repo.get_manifest()
        image = repo.get_image_config(manifest.config)
        tag_list = repo.get_tag_list()
        runtime = image.config
        
        return InspectOutput(
            name=repo.image_name() if repo.kind == "registry" else None,
            digest=sha256_digest(raw),
            repo_tags=tag_list.tags,
            created=image.created,
            labels=runtime.labels if runtime else None,
            architecture=image.architecture,
            os=image.os,
            layers=[layer.digest for layer in manifest.layers],
            env=runtime.env if runtime else None,
        )
    
    def copy(self, src: str, dest: str) -> CopyResult:
        return copy_image(src, dest, self.settings, transport=self.transport)
    
    def soci_inspect(self, url: str, *, ca_file: Optional[str] = None) -> SociInfo:
        """
        Resolve the SOCI image at ``url`` and report its verification status.
        
        A failed verification is reported in the ``verification`` field;
        only resolution errors raise.
        """
        soci = SociRef.resolve(self.open(url), self.settings.product)
        verification = ""
        if self.cfg.verify_on_inspect:
            verification = soci.verify(ca_file=ca_file, signer=self.signer).diagnostic
        return soci.info(verification)
    
    def soci_get(self, url: str) -> SignedBundle:
        return SociRef.resolve(self.open(url), self.settings.product).artifacts()
    
    def soci_put(self, bundle_file: str, url: str) -> PublishedBundle:
        """
        Publish a bundle file to ``url``.
        
        Raises:
            LocalIOError: If the bundle file cannot be read
            ValidationError: If the bundle is malformed
        """
        bundle = SignedBundle.load(bundle_file)
        return publish_bundle(self.open(url), bundle, self.settings.product)
    
    def soci_bundle(self, name: str, install_file: str, pub_key_file: str,
                    sign_key_file: str) -> Path:
        return build_bundle(
            name, install_file, pub_key_file, sign_key_file,
            signer=self.signer, out_dir=self.cfg.bundle_dir,
        )


__all__ = ["InspectOutput", "OpsConfig", "Operations"]
