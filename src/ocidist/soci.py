"""
Signed OCI (SOCI) bundles.

A SOCI image is a three node referrer graph anchored at an install
manifest:

    install manifest  (artifactType application/vnd.<product>.install, tag-addressed)
      <- pubkeycrt    (referrer holding the signer's PEM certificate)
      <- signature    (referrer holding a detached signature of the install bytes)

This module resolves that graph from any OciRepository, assembles and
publishes portable bundle files, and verifies the signature chain.
"""
from __future__ import annotations

import base64
import binascii
import enum
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import LocalIOError, NotFoundError, ValidationError, VerificationResult
from .fileio import write_atomically
from .media_types import OCI_IMAGE_MANIFEST
from .models import Descriptor, Manifest, parse_document, sha256_digest
from .publisher import put_artifact
from .signing import CryptographySigner, Signer, describe_certificate, load_certificate
from .storage.base import OciRepository

logger = logging.getLogger(__name__)

INSTALL = "install"
PUBKEYCRT = "pubkeycrt"
SIGNATURE = "signature"
ARTIFACT_KINDS = (INSTALL, PUBKEYCRT, SIGNATURE)

# Layer titles of the published artifacts
ARTIFACT_NAMES = {
    INSTALL: "install.json",
    PUBKEYCRT: "pubkeycrt.pem",
    SIGNATURE: "install.json.signature",
}

BUNDLE_SUFFIX = ".soci"
SIGNATURE_ENCODING = "base64"


def artifact_type(product: str, kind: str) -> str:
    """
    Media type of a SOCI artifact kind.
    
    Examples:
        >>> artifact_type("atomix", "install")
        'application/vnd.atomix.install'
    
    Raises:
        ValidationError: If ``kind`` is not install, pubkeycrt or signature
    """
    if kind not in ARTIFACT_KINDS:
        raise ValidationError(f"Unknown SOCI Artifact Type: '{kind}'")
    return f"application/vnd.{product}.{kind}"


class Signature(BaseModel):
    encoding: str = SIGNATURE_ENCODING
    data: str


class SignedBundle(BaseModel):
    """
    Portable bundle file.
    
    ``install`` holds the install JSON text exactly as signed and
    ``pubkeycrt`` the PEM certificate text.
    """
    model_config = ConfigDict(populate_by_name=True)
    
    install: str
    pubkeycrt: str
    signature: Signature
    
    @classmethod
    def from_artifacts(cls, install: bytes, pubkeycrt: bytes, signature: bytes) -> SignedBundle:
        try:
            return cls(
                install=install.decode("utf-8"),
                pubkeycrt=pubkeycrt.decode("utf-8"),
                signature=Signature(
                    encoding=SIGNATURE_ENCODING,
                    data=base64.b64encode(signature).decode("ascii"),
                ),
            )
        except UnicodeDecodeError as e:
            raise ValidationError(f"SOCI artifacts must be UTF-8 text: {e}") from e
    
    def install_bytes(self) -> bytes:
        return self.install.encode("utf-8")
    
    def pubkeycrt_bytes(self) -> bytes:
        return self.pubkeycrt.encode("utf-8")
    
    def signature_blob(self) -> bytes:
        """
        Decoded signature bytes.
        
        Raises:
            ValidationError: If the encoding is not base64 or the data does not decode
        """
        if self.signature.encoding != SIGNATURE_ENCODING:
            raise ValidationError(f"Unsupported signature encoding '{self.signature.encoding}'")
        try:
            return base64.b64decode(self.signature.data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"Error decoding base64 signature data: {e}") from e
    
    def to_json_bytes(self) -> bytes:
        return (self.model_dump_json(indent=2) + "\n").encode("utf-8")
    
    @classmethod
    def load(cls, path: Union[str, Path]) -> SignedBundle:
        """
        Read a bundle file.
        
        Raises:
            LocalIOError: If the file cannot be read
            ValidationError: If it is not a bundle document
        """
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            raise LocalIOError(f"Failed to read SOCI bundle file '{path}': {e}") from e
        return parse_document(cls, data, f"SOCI bundle '{path}'")
    
    def dump(self, path: Union[str, Path]) -> Path:
        """Write the bundle file atomically and return its path."""
        path = Path(path)
        write_atomically(path, self.to_json_bytes())
        return path


class SociInfo(BaseModel):
    """Summary printed by ``soci inspect``."""
    model_config = ConfigDict(populate_by_name=True)
    
    ref: str
    digest: str
    install_layer: str = Field(..., alias="install-layer")
    referrers: List[str] = Field(default_factory=list)
    verification: str = ""
    
    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), indent=2)


@dataclass
class SociRef:
    """
    Resolved view of a SOCI image.
    
    Derived fresh from the repository on every ``resolve``; nothing is
    cached between inspections.
    """
    repo: OciRepository
    product: str
    manifest: Manifest
    digest: str
    install: Descriptor
    pubkeycrt: Optional[Descriptor] = None
    signature: Optional[Descriptor] = None
    
    @classmethod
    def resolve(cls, repo: OciRepository, product: str = "atomix") -> SociRef:
        """
        Resolve the SOCI graph at the repository's reference.
        
        Fetches the manifest, checks it is an install artifact with exactly
        one layer, then classifies its referrers into the certificate and
        signature slots. Referrers of other types are ignored.
        
        Raises:
            ValidationError: If the manifest is not a SOCI install manifest
            NotFoundError: If there is no manifest at the reference
        """
        url = repo.source_url()
        manifest, raw = repo.get_manifest()
        digest = sha256_digest(raw)
        
        install_type = artifact_type(product, INSTALL)
        if manifest.artifact_type != install_type:
            raise ValidationError(
                f"{url} does not point to a valid SOCI image, found artifactType "
                f"'{manifest.artifact_type}' expected '{install_type}'"
            )
        if len(manifest.layers) != 1:
            raise ValidationError(f"SOCI Image '{url}' has {len(manifest.layers)} layers, expected 1")
        
        soci = cls(repo=repo, product=product, manifest=manifest, digest=digest,
                   install=manifest.layers[0])
        
        anchor = Descriptor(media_type=OCI_IMAGE_MANIFEST, digest=digest, size=len(raw))
        cert_type = artifact_type(product, PUBKEYCRT)
        sig_type = artifact_type(product, SIGNATURE)
        for referrer in repo.get_referrers(anchor).manifests:
            if referrer.artifact_type == cert_type:
                soci.pubkeycrt = referrer
            elif referrer.artifact_type == sig_type:
                soci.signature = referrer
        
        logger.debug(
            f"Resolved SOCI {url} @ {digest}: pubkeycrt={soci.pubkeycrt and soci.pubkeycrt.digest} "
            f"signature={soci.signature and soci.signature.digest}"
        )
        return soci
    
    # Fetch chain
    
    def install_blob(self) -> bytes:
        return self.repo.get_blob(self.install)
    
    def _referrer_blob(self, kind: str, descriptor: Optional[Descriptor]) -> bytes:
        # referrer manifest first, then its only layer
        if descriptor is None:
            raise NotFoundError(f"SOCI image '{self.repo.source_url()}' has no {kind} referrer")
        manifest, _ = self.repo.get_manifest(descriptor.digest)
        if len(manifest.layers) != 1:
            raise ValidationError(
                f"SOCI {kind} manifest {descriptor.digest} has {len(manifest.layers)} layers, expected 1"
            )
        return self.repo.get_blob(manifest.layers[0])
    
    def pubkeycrt_blob(self) -> bytes:
        return self._referrer_blob(PUBKEYCRT, self.pubkeycrt)
    
    def signature_blob(self) -> bytes:
        return self._referrer_blob(SIGNATURE, self.signature)
    
    def artifacts(self) -> SignedBundle:
        return SignedBundle.from_artifacts(
            self.install_blob(), self.pubkeycrt_blob(), self.signature_blob()
        )
    
    def info(self, verification: str = "") -> SociInfo:
        referrers = [
            f"{desc.digest}: {desc.artifact_type}"
            for desc in (self.signature, self.pubkeycrt) if desc is not None
        ]
        return SociInfo(
            ref=self.repo.image_name(),
            digest=self.digest,
            install_layer=f"{self.install.digest}: {self.manifest.artifact_type}",
            referrers=referrers,
            verification=verification,
        )
    
    # Verification
    
    def verify(self, ca_file: Optional[Union[str, Path]] = None,
               signer: Optional[Signer] = None) -> VerificationResult:
        """
        Verify the detached signature over the install payload.
        
        When ``ca_file`` is given the certificate must first validate
        against that CA bundle. A failed check is returned as a result with
        a diagnostic; only errors fetching the artifacts or reading the CA
        file are raised.
        
        Returns:
            VerificationResult; ``(True, "Verified OK", None)`` on success
        """
        signer = signer or CryptographySigner()
        install = self.install_blob()
        signature = self.signature_blob()
        cert = self.pubkeycrt_blob()
        
        try:
            public_key = signer.extract_public_key(cert)
        except ValidationError as e:
            return VerificationResult(False, f"Verification Failed: cannot extract public key: {e}", e)
        
        if ca_file:
            try:
                ca_pem = Path(ca_file).read_bytes()
            except OSError as e:
                raise LocalIOError(f"Failed to read CA file '{ca_file}': {e}") from e
            
            if not signer.validate_certificate(cert, ca_pem):
                subject = describe_certificate(cert)
                err = ValidationError(f"certificate '{subject}' does not chain to CA file '{ca_file}'")
                return VerificationResult(
                    False,
                    f"Verification Failed: CA file '{ca_file}' cannot verify SOCI cert '{subject}'",
                    err,
                )
        
        if not signer.verify(install, signature, public_key):
            err = ValidationError(f"signature of {self.install.digest} does not match the SOCI certificate")
            return VerificationResult(False, f"Verification Failed: {err}", err)
        
        logger.debug(f"Verified SOCI {self.repo.source_url()} @ {self.digest}")
        return VerificationResult(True, "Verified OK")


class BundleState(enum.Enum):
    NO_BUNDLE = "no-bundle"
    HAS_INSTALL_CERT = "has-install-cert"
    SIGNED = "signed"
    PACKAGED = "packaged"
    FAILED = "failed"


class BundleBuilder:
    """
    Assembles a bundle file step by step.
    
    States advance NO_BUNDLE -> HAS_INSTALL_CERT -> SIGNED -> PACKAGED. Any
    error moves the builder to FAILED, and a failed package step leaves no
    file behind.
    """
    
    def __init__(self, signer: Optional[Signer] = None):
        self.signer = signer or CryptographySigner()
        self.state = BundleState.NO_BUNDLE
        self._install: Optional[bytes] = None
        self._pubkeycrt: Optional[bytes] = None
        self._bundle: Optional[SignedBundle] = None
    
    def _require(self, state: BundleState, step: str) -> None:
        if self.state != state:
            raise ValidationError(f"Cannot {step} a bundle in state {self.state.value}")
    
    def _read(self, path: Union[str, Path], what: str) -> bytes:
        try:
            return Path(path).read_bytes()
        except OSError as e:
            raise LocalIOError(f"Failed to read {what} file '{path}': {e}") from e
    
    def add_install_and_cert(self, install_file: Union[str, Path],
                             pub_key_file: Union[str, Path]) -> None:
        self._require(BundleState.NO_BUNDLE, "load install into")
        try:
            install = self._read(install_file, "install")
            pubkeycrt = self._read(pub_key_file, "pub-key")
            try:
                json.loads(install)
            except ValueError as e:
                raise ValidationError(f"Install file '{install_file}' is not valid JSON: {e}") from e
            load_certificate(pubkeycrt)
        except Exception:
            self.state = BundleState.FAILED
            raise
        self._install, self._pubkeycrt = install, pubkeycrt
        self.state = BundleState.HAS_INSTALL_CERT
    
    def sign(self, sign_key_file: Union[str, Path]) -> None:
        self._require(BundleState.HAS_INSTALL_CERT, "sign")
        try:
            signature = self.signer.sign(self._install, sign_key_file)
            self._bundle = SignedBundle.from_artifacts(self._install, self._pubkeycrt, signature)
        except Exception:
            self.state = BundleState.FAILED
            raise
        logger.debug(f"Signed install payload with {sign_key_file}")
        self.state = BundleState.SIGNED
    
    def package(self, out_path: Union[str, Path]) -> Path:
        self._require(BundleState.SIGNED, "package")
        try:
            path = self._bundle.dump(out_path)
        except Exception:
            self.state = BundleState.FAILED
            raise
        self.state = BundleState.PACKAGED
        return path
    
    @property
    def bundle(self) -> Optional[SignedBundle]:
        return self._bundle


def build_bundle(name: str, install_file: Union[str, Path], pub_key_file: Union[str, Path],
                 sign_key_file: Union[str, Path], *, signer: Optional[Signer] = None,
                 out_dir: Union[str, Path] = ".") -> Path:
    """
    Build ``<out_dir>/<name>.soci`` from an install file, certificate and signing key.
    
    Returns:
        Path of the written bundle file
    """
    builder = BundleBuilder(signer)
    builder.add_install_and_cert(install_file, pub_key_file)
    builder.sign(sign_key_file)
    return builder.package(Path(out_dir) / f"{name}{BUNDLE_SUFFIX}")


@dataclass(frozen=True)
class PublishedBundle:
    """Manifest digests of the three published artifacts."""
    install: str
    pubkeycrt: str
    signature: str


def publish_bundle(repo: OciRepository, bundle: SignedBundle, product: str = "atomix") -> PublishedBundle:
    """
    Push a bundle as three artifacts.
    
    The install artifact is pushed to the tag without a subject, so a
    republished bundle moves the tag. The certificate and signature are
    then pushed as referrers of that install manifest.
    
    Raises:
        ValidationError: If the bundle signature cannot be decoded (nothing is pushed)
    """
    signature = bundle.signature_blob()
    url = repo.source_url()
    
    install_digest = put_artifact(
        repo, ARTIFACT_NAMES[INSTALL], artifact_type(product, INSTALL),
        bundle.install_bytes(), link_subject=False,
    )
    logger.debug(f"Pushed SOCI install {install_digest} to {url}")
    cert_digest = put_artifact(
        repo, ARTIFACT_NAMES[PUBKEYCRT], artifact_type(product, PUBKEYCRT),
        bundle.pubkeycrt_bytes(),
    )
    sig_digest = put_artifact(
        repo, ARTIFACT_NAMES[SIGNATURE], artifact_type(product, SIGNATURE), signature,
    )
    return PublishedBundle(install=install_digest, pubkeycrt=cert_digest, signature=sig_digest)


__all__ = [
    "INSTALL",
    "PUBKEYCRT",
    "SIGNATURE",
    "ARTIFACT_KINDS",
    "ARTIFACT_NAMES",
    "artifact_type",
    "Signature",
    "SignedBundle",
    "SociInfo",
    "SociRef",
    "BundleState",
    "BundleBuilder",
    "build_bundle",
    "PublishedBundle",
    "publish_bundle",
]
