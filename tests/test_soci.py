"""
Tests for SOCI signed bundles.

Builds bundles with the session PKI, publishes them into the fake registry
and resolves, fetches and verifies them back.
"""
from __future__ import annotations

import base64
import json

import pytest

from ocidist.errors import LocalIOError, NotFoundError, ValidationError
from ocidist.media_types import OCI_IMAGE_MANIFEST
from ocidist.models import Descriptor
from ocidist.settings import Settings
from ocidist.signing import CryptographySigner
from ocidist.soci import (
    BundleBuilder,
    BundleState,
    Signature,
    SignedBundle,
    SociRef,
    artifact_type,
    build_bundle,
    publish_bundle,
)
from ocidist.storage.factory import open_repository

from fakes import sha256
from helpers.oci_helpers import make_layout, write_manifest

REPO = "product/services/svc"
URL = f"ocidist://localhost:5000/{REPO}:v1.2"


@pytest.fixture
def bundle_file(tmp_path, pki, install_file):
    return build_bundle("mysvc", install_file, pki.cert_file, pki.key_file, out_dir=tmp_path)


@pytest.fixture
def published(open_repo, bundle_file):
    repo = open_repo(URL)
    return publish_bundle(repo, SignedBundle.load(bundle_file))


class TestArtifactTypes:
    """Test the fixed artifact type table."""
    
    @pytest.mark.parametrize("kind", ["install", "pubkeycrt", "signature"])
    def test_known_kinds(self, kind):
        assert artifact_type("atomix", kind) == f"application/vnd.atomix.{kind}"
    
    def test_product_is_configurable(self):
        assert artifact_type("acme", "install") == "application/vnd.acme.install"
    
    def test_unknown_kind_raises(self):
        with pytest.raises(ValidationError, match="Unknown SOCI Artifact Type"):
            artifact_type("atomix", "manifest")


class TestSignedBundle:
    """Test the bundle document."""
    
    def test_signature_round_trip(self):
        signature = bytes(range(256))
        bundle = SignedBundle.from_artifacts(b'{"a":1}', b"cert", signature)
        
        assert bundle.signature.encoding == "base64"
        assert bundle.signature_blob() == signature
    
    def test_unsupported_encoding_raises(self):
        bundle = SignedBundle(install="{}", pubkeycrt="cert", signature=Signature(encoding="hex", data="00"))
        
        with pytest.raises(ValidationError, match="Unsupported signature encoding 'hex'"):
            bundle.signature_blob()
    
    def test_invalid_base64_raises(self):
        bundle = SignedBundle(install="{}", pubkeycrt="cert", signature=Signature(data="not base64!"))
        
        with pytest.raises(ValidationError, match="base64"):
            bundle.signature_blob()
    
    def test_file_format(self, bundle_file, install_file, pki):
        doc = json.loads(bundle_file.read_text())
        
        assert set(doc) == {"install", "pubkeycrt", "signature"}
        assert doc["install"] == install_file.read_text()
        assert doc["pubkeycrt"] == pki.cert_file.read_text()
        assert doc["signature"]["encoding"] == "base64"
        base64.b64decode(doc["signature"]["data"], validate=True)
    
    def test_load_missing_file_raises(self, tmp_path):
        with pytest.raises(LocalIOError):
            SignedBundle.load(tmp_path / "missing.soci")
    
    def test_load_malformed_file_raises(self, tmp_path):
        path = tmp_path / "bad.soci"
        path.write_text('{"install": "{}"}')
        
        with pytest.raises(ValidationError, match="SOCI bundle"):
            SignedBundle.load(path)


class TestBundleBuilder:
    """Test the bundle lifecycle."""
    
    def test_happy_path_states(self, tmp_path, pki, install_file):
        builder = BundleBuilder()
        assert builder.state == BundleState.NO_BUNDLE
        
        builder.add_install_and_cert(install_file, pki.cert_file)
        assert builder.state == BundleState.HAS_INSTALL_CERT
        
        builder.sign(pki.key_file)
        assert builder.state == BundleState.SIGNED
        
        path = builder.package(tmp_path / "out.soci")
        assert builder.state == BundleState.PACKAGED
        assert path.exists()
    
    def test_build_bundle_names_file(self, bundle_file, tmp_path):
        assert bundle_file == tmp_path / "mysvc.soci"
    
    def test_signature_verifies(self, bundle_file, pki):
        bundle = SignedBundle.load(bundle_file)
        signer = CryptographySigner()
        
        public_key = signer.extract_public_key(bundle.pubkeycrt_bytes())
        assert signer.verify(bundle.install_bytes(), bundle.signature_blob(), public_key)
    
    def test_bad_key_fails_without_file(self, tmp_path, pki, install_file):
        bad_key = tmp_path / "bad.key"
        bad_key.write_text("garbage")
        
        with pytest.raises(ValidationError):
            build_bundle("broken", install_file, pki.cert_file, bad_key, out_dir=tmp_path)
        assert not (tmp_path / "broken.soci").exists()
    
    def test_failure_is_terminal(self, tmp_path, pki):
        builder = BundleBuilder()
        
        with pytest.raises(LocalIOError):
            builder.add_install_and_cert(tmp_path / "missing.json", pki.cert_file)
        assert builder.state == BundleState.FAILED
        with pytest.raises(ValidationError, match="state failed"):
            builder.sign(pki.key_file)
    
    def test_install_must_be_json(self, tmp_path, pki):
        install = tmp_path / "install.txt"
        install.write_text("not json")
        
        with pytest.raises(ValidationError, match="not valid JSON"):
            BundleBuilder().add_install_and_cert(install, pki.cert_file)
    
    def test_package_failure_leaves_no_file(self, tmp_path, pki, install_file):
        builder = BundleBuilder()
        builder.add_install_and_cert(install_file, pki.cert_file)
        builder.sign(pki.key_file)
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        
        with pytest.raises(LocalIOError):
            builder.package(blocker / "out.soci")
        assert builder.state == BundleState.FAILED
        assert list(tmp_path.glob("**/*.soci")) == []


class TestPublishAndResolve:
    """Test publishing a bundle and resolving it back."""
    
    def test_install_lands_on_tag(self, fake_registry, published):
        assert fake_registry.resolve(REPO, "v1.2") == published.install
        doc = fake_registry.manifest_json(REPO, "v1.2")
        assert doc["artifactType"] == "application/vnd.atomix.install"
        assert "subject" not in doc
    
    def test_exactly_two_referrers(self, fake_registry, open_repo, published):
        """Test the install manifest gets a pubkeycrt and a signature referrer."""
        payload = fake_registry.manifests[REPO][published.install][1]
        anchor = Descriptor(media_type=OCI_IMAGE_MANIFEST, digest=published.install, size=len(payload))
        
        referrers = open_repo(URL).get_referrers(anchor)
        
        types = sorted(d.artifact_type for d in referrers.manifests)
        assert types == ["application/vnd.atomix.pubkeycrt", "application/vnd.atomix.signature"]
    
    def test_publish_order(self, fake_registry, published):
        manifest_puts = [p for m, p in fake_registry.requests if m == "PUT" and "/manifests/" in p]
        
        assert manifest_puts == [
            f"/v2/{REPO}/manifests/v1.2",
            f"/v2/{REPO}/manifests/{published.pubkeycrt}",
            f"/v2/{REPO}/manifests/{published.signature}",
        ]
    
    def test_bad_signature_encoding_pushes_nothing(self, fake_registry, open_repo):
        bundle = SignedBundle(install="{}", pubkeycrt="cert", signature=Signature(encoding="hex", data="00"))
        
        with pytest.raises(ValidationError):
            publish_bundle(open_repo(URL), bundle)
        assert fake_registry.requests == []
    
    def test_resolve(self, published, open_repo):
        soci = SociRef.resolve(open_repo(URL))
        
        assert soci.digest == published.install
        assert soci.pubkeycrt.digest == published.pubkeycrt
        assert soci.signature.digest == published.signature
        assert soci.install.annotations["org.opencontainers.image.title"] == "install.json"
    
    def test_two_hop_fetch(self, published, open_repo, bundle_file):
        bundle = SignedBundle.load(bundle_file)
        soci = SociRef.resolve(open_repo(URL))
        
        assert soci.install_blob() == bundle.install_bytes()
        assert soci.pubkeycrt_blob() == bundle.pubkeycrt_bytes()
        assert soci.signature_blob() == bundle.signature_blob()
        assert soci.artifacts() == bundle
    
    def test_republish_moves_tag(self, fake_registry, open_repo, published, tmp_path, pki):
        install = tmp_path / "v2.json"
        install.write_text('{"service": "svc", "version": "2"}')
        second = build_bundle("v2", install, pki.cert_file, pki.key_file, out_dir=tmp_path)
        
        republished = publish_bundle(open_repo(URL), SignedBundle.load(second))
        soci = SociRef.resolve(open_repo(URL))
        
        assert soci.digest == republished.install != published.install
        assert soci.install_blob() == install.read_bytes()
        assert soci.verify().ok
    
    def test_info(self, published, open_repo):
        info = SociRef.resolve(open_repo(URL)).info("Verified OK")
        doc = json.loads(info.to_json())
        
        assert doc["ref"] == f"localhost:5000/{REPO}"
        assert doc["digest"] == published.install
        assert doc["install-layer"].endswith(": application/vnd.atomix.install")
        assert doc["referrers"] == [
            f"{published.signature}: application/vnd.atomix.signature",
            f"{published.pubkeycrt}: application/vnd.atomix.pubkeycrt",
        ]
        assert doc["verification"] == "Verified OK"
    
    def test_non_soci_image_rejected(self, fake_registry, open_repo):
        fake_registry.add_image(REPO, "v1.2", {"os": "linux"}, [b"layer"])
        
        with pytest.raises(ValidationError, match="does not point to a valid SOCI image"):
            SociRef.resolve(open_repo(URL))
    
    def test_wrong_product_rejected(self, published, open_repo):
        with pytest.raises(ValidationError, match="application/vnd.acme.install"):
            SociRef.resolve(open_repo(URL), product="acme")
    
    def test_missing_referrer_raises_not_found(self, fake_registry, open_repo):
        open_repo(URL).put_artifact("install.json", "application/vnd.atomix.install", b"{}")
        soci = SociRef.resolve(open_repo(URL))
        
        with pytest.raises(NotFoundError, match="no signature referrer"):
            soci.signature_blob()
    
    def test_other_referrers_ignored(self, fake_registry, open_repo, published):
        open_repo(URL).put_artifact("sbom.json", "application/spdx+json", b"{}")
        
        soci = SociRef.resolve(open_repo(URL))
        
        assert soci.signature.digest == published.signature
        assert soci.pubkeycrt.digest == published.pubkeycrt


class TestVerify:
    """Test signature chain verification."""
    
    def test_verified_ok(self, published, open_repo):
        result = SociRef.resolve(open_repo(URL)).verify()
        
        assert result.ok
        assert result.diagnostic == "Verified OK"
        assert result.error is None
    
    def test_verified_ok_with_ca(self, published, open_repo, pki):
        result = SociRef.resolve(open_repo(URL)).verify(ca_file=pki.ca_file)
        
        assert bool(result)
        assert result.diagnostic == "Verified OK"
    
    def test_wrong_ca(self, published, open_repo, pki):
        result = SociRef.resolve(open_repo(URL)).verify(ca_file=pki.other_ca_file)
        
        assert not result.ok
        assert result.diagnostic == (
            f"Verification Failed: CA file '{pki.other_ca_file}' cannot verify SOCI cert 'CN=soci-signer'"
        )
        assert isinstance(result.error, ValidationError)
    
    def test_tampered_install(self, fake_registry, open_repo, pki, tmp_path, install_file):
        """Test a single flipped byte in the install payload fails verification."""
        bundle = SignedBundle.load(build_bundle("t", install_file, pki.cert_file, pki.key_file, out_dir=tmp_path))
        install = bytearray(bundle.install_bytes())
        install[0] ^= 0x01
        tampered = bundle.model_copy(update={"install": install.decode("utf-8")})
        publish_bundle(open_repo(URL), tampered)
        
        result = SociRef.resolve(open_repo(URL)).verify()
        
        assert not result.ok
        assert result.diagnostic.startswith("Verification Failed")
    
    def test_missing_ca_file_raises(self, published, open_repo, tmp_path):
        with pytest.raises(LocalIOError, match="CA file"):
            SociRef.resolve(open_repo(URL)).verify(ca_file=tmp_path / "missing.pem")
    
    def test_tampered_blob_in_transit(self, fake_registry, published, open_repo):
        """Test corrupted install bytes surface as a digest error before verification."""
        soci = SociRef.resolve(open_repo(URL))
        fake_registry.corrupt_blobs.add(soci.install.digest)
        
        with pytest.raises(ValidationError, match="Digest mismatch"):
            soci.verify()
    
    def test_uses_injected_signer(self, published, open_repo):
        class RejectingSigner(CryptographySigner):
            def verify(self, data, signature, public_key):
                return False
        
        result = SociRef.resolve(open_repo(URL)).verify(signer=RejectingSigner())
        
        assert not result.ok


class TestLayoutSoci:
    """Test resolving a SOCI image stored in a local layout."""
    
    def test_resolve_and_verify_from_layout(self, tmp_path, fake_registry, published, open_repo):
        # copy the published graph into a layout by hand
        layout_dir = tmp_path / "oci"
        layout = make_layout(layout_dir)
        for digest, data in fake_registry.blobs[REPO].items():
            assert layout.write_blob(data) == digest
        for digest, (media_type, payload) in fake_registry.manifests[REPO].items():
            layout.write_blob(payload)
            desc = Descriptor(media_type=media_type, digest=digest, size=len(payload))
            if digest == published.install:
                layout.put_reference("svc:v1.2", desc)
            else:
                layout.add_manifest(desc)
        
        repo = open_repository(f"oci://{layout_dir}:svc:v1.2", Settings(tls_verify=False))
        soci = SociRef.resolve(repo)
        
        assert soci.digest == published.install
        assert soci.signature.digest == published.signature
        assert soci.verify().diagnostic == "Verified OK"
        assert sha256(soci.install_blob()) == soci.install.digest
