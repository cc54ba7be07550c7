"""
Tests for configuration loading.

Run with: pytest tests/test_config.py -v
"""

import os
import sys
from unittest.mock import patch

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core import config as config_module
from core.config import get_config, get_section, get_server_config, load_config


class TestLoadConfig:
    """Tests for load_config()."""

    def test_project_config_has_sections(self):
        config = load_config()
        for section in ("api", "session", "devices", "logging"):
            assert section in config

    def test_session_duration_is_five_minutes(self):
        assert load_config()["session"]["duration_ms"] == 300_000

    def test_custom_path(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("api:\n  base_url: http://example.test/v1\n")
        assert load_config(str(path)) == {"api": {"base_url": "http://example.test/v1"}}

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))


class TestGetConfig:
    """Tests for the configuration singleton."""

    def test_singleton(self):
        assert get_config() is get_config()

    def test_missing_section_lists_available(self):
        with pytest.raises(KeyError, match="Available sections"):
            get_section("nonexistent")


class TestServerConfig:
    """Tests for get_server_config()."""

    @pytest.mark.parametrize(
        "base_url,expected",
        [
            ("http://localhost:8000/v1", {"host": "0.0.0.0", "port": 8000}),
            ("http://192.168.1.10:9000/api", {"host": "192.168.1.10", "port": 9000}),
            ("http://backend.local", {"host": "0.0.0.0", "port": 8000}),
        ],
    )
    def test_parses_base_url(self, base_url, expected):
        with patch.object(config_module, "get_api_config", return_value={"base_url": base_url}):
            assert get_server_config() == expected


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
