"""
Tests for settings module.

Tests settings validation and environment variable loading.
"""
from __future__ import annotations

import pytest

from ocidist.settings import Settings, create_settings_from_env


class TestSettings:
    """Test Settings dataclass validation."""
    
    def test_defaults(self):
        settings = Settings()
        
        assert settings.tls_verify is True
        assert settings.debug is False
        assert settings.http_timeout_s == 30.0
        assert settings.http_retry == 0
        assert settings.verify_digests is True
        assert settings.product == "atomix"
    
    def test_settings_are_frozen(self):
        settings = Settings()
        
        with pytest.raises(AttributeError):
            settings.tls_verify = False
    
    @pytest.mark.parametrize("kwargs, message", [
        ({"http_timeout_s": 0}, "http_timeout_s must be positive"),
        ({"http_retry": -1}, "http_retry must be non-negative"),
        ({"product": ""}, "Invalid product format"),
        ({"product": "Atomix"}, "Invalid product format"),
        ({"product": "a/b"}, "Invalid product format"),
    ])
    def test_invalid_values(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            Settings(**kwargs)


class TestCreateSettingsFromEnv:
    """Test environment loading."""
    
    def test_defaults_without_env(self):
        assert create_settings_from_env() == Settings()
    
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("OCIDIST_TLS_VERIFY", "false")
        monkeypatch.setenv("OCIDIST_DEBUG", "1")
        monkeypatch.setenv("OCIDIST_HTTP_TIMEOUT", "5.5")
        monkeypatch.setenv("OCIDIST_HTTP_RETRY", "2")
        monkeypatch.setenv("OCIDIST_VERIFY_DIGESTS", "no")
        monkeypatch.setenv("OCIDIST_SOCI_PRODUCT", "acme")
        
        settings = create_settings_from_env()
        
        assert settings == Settings(
            tls_verify=False,
            debug=True,
            http_timeout_s=5.5,
            http_retry=2,
            verify_digests=False,
            product="acme",
        )
    
    def test_invalid_env_raises(self, monkeypatch):
        monkeypatch.setenv("OCIDIST_HTTP_RETRY", "-3")
        
        with pytest.raises(ValueError):
            create_settings_from_env()
    
    def test_fresh_instance_every_call(self, monkeypatch):
        """Test no caching: env changes are seen by the next call."""
        first = create_settings_from_env()
        monkeypatch.setenv("OCIDIST_TLS_VERIFY", "false")
        
        assert first.tls_verify is True
        assert create_settings_from_env().tls_verify is False
