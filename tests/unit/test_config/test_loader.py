"""Unit tests for YAML option loading."""

from pathlib import Path

import pytest

from cdnredirect.config.loader import load_middleware_options
from cdnredirect.errors import ConfigError


class TestLoadMiddlewareOptions:
    """Tests for load_middleware_options."""

    @pytest.mark.unit
    def test_flat_mapping(self, tmp_path: Path) -> None:
        """Test a file holding the option map itself."""
        path = tmp_path / "cloudfront.yaml"
        path.write_text(
            "baseurl: d111111abcdef8.cloudfront.net\n"
            "privatekey: /etc/keys/cloudfront.pem\n"
            "keypairid: K2JCJMDEHXQW5F\n"
            "duration: 30m\n"
        )

        options = load_middleware_options(path)

        assert options == {
            "baseurl": "d111111abcdef8.cloudfront.net",
            "privatekey": "/etc/keys/cloudfront.pem",
            "keypairid": "K2JCJMDEHXQW5F",
            "duration": "30m",
        }

    @pytest.mark.unit
    def test_registry_configuration(self, tmp_path: Path) -> None:
        """Test a registry-style middleware.storage list."""
        path = tmp_path / "config.yml"
        path.write_text(
            "version: 0.1\n"
            "middleware:\n"
            "  storage:\n"
            "    - name: redirect\n"
            "      options:\n"
            "        baseurl: https://other.example/\n"
            "    - name: cloudfront\n"
            "      options:\n"
            "        baseurl: https://d111111abcdef8.cloudfront.net/\n"
            "        ipfilteredby: awsregion\n"
            "        awsregion: us-east-1, us-west-2\n"
        )

        options = load_middleware_options(path)

        assert options["baseurl"] == "https://d111111abcdef8.cloudfront.net/"
        assert options["awsregion"] == "us-east-1, us-west-2"

    @pytest.mark.unit
    def test_named_middleware_missing(self, tmp_path: Path) -> None:
        """Test a registry config without the requested middleware."""
        path = tmp_path / "config.yml"
        path.write_text("middleware:\n  storage:\n    - name: redirect\n")

        with pytest.raises(ConfigError, match="cloudfront"):
            load_middleware_options(path)

    @pytest.mark.unit
    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that unreadable files raise ConfigError."""
        with pytest.raises(ConfigError) as exc_info:
            load_middleware_options(tmp_path / "missing.yaml")
        assert exc_info.value.key == "config"

    @pytest.mark.unit
    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that malformed YAML raises ConfigError."""
        path = tmp_path / "bad.yaml"
        path.write_text("baseurl: [unterminated\n")

        with pytest.raises(ConfigError, match="invalid YAML"):
            load_middleware_options(path)

    @pytest.mark.unit
    def test_non_mapping_document(self, tmp_path: Path) -> None:
        """Test that a top-level list is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- baseurl\n- privatekey\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_middleware_options(path)
