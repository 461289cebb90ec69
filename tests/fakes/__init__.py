# Fake implementations for testing

from .fake_registry import FakeRegistry, sha256

__all__ = ["FakeRegistry", "sha256"]
