"""
Tests for settings loading and validation.
"""

import pytest

from telemetry_query import ConfigError, Settings, load_settings
from telemetry_query.config import parse_bool


class TestSettings:
    """Tests for the Settings model."""

    def test_defaults(self):
        """Test default region and derived base URL."""
        settings = Settings()

        assert settings.region == "eu-west-1"
        assert settings.base_url == "https://api.eu-west-1.aws.dash0.com"
        assert settings.dataset is None
        assert settings.debug is False
        assert settings.timeout_seconds == 60.0

    @pytest.mark.parametrize("region,expected", [
        ("us-east-1", "https://api.us-east-1.aws.dash0.com"),
        ("us-west-2", "https://api.us-west-2.aws.dash0.com"),
    ])
    def test_region_derives_base_url(self, region, expected):
        """Test known regions map to their API host."""
        assert Settings(region=region).base_url == expected

    def test_unknown_region_has_no_base_url(self):
        """Test an unknown region leaves base_url unset."""
        assert Settings(region="ap-south-9").base_url is None

    def test_explicit_base_url_wins(self):
        """Test an explicit base URL is not replaced by the region."""
        settings = Settings(region="us-east-1", base_url="https://proxy.example.test")

        assert settings.base_url == "https://proxy.example.test"

    def test_validate_requires_token(self):
        """Test validation fails without an auth token."""
        with pytest.raises(ConfigError, match="DASH0_AUTH_TOKEN"):
            Settings().validate_settings()

    def test_validate_requires_base_url(self):
        """Test validation fails when no base URL can be determined."""
        with pytest.raises(ConfigError, match="base URL"):
            Settings(auth_token="t", region="nowhere").validate_settings()

    def test_validate_requires_https(self):
        """Test validation rejects plain HTTP."""
        with pytest.raises(ConfigError, match="HTTPS"):
            Settings(auth_token="t", base_url="http://api.example.test").validate_settings()

    def test_validate_passes(self):
        """Test complete settings validate."""
        Settings(auth_token="t").validate_settings()

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestParseBool:
    """Tests for boolean flag parsing."""

    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", " Yes "])
    def test_truthy(self, value):
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", [None, "", "false", "0", "no", "on"])
    def test_falsy(self, value):
        assert parse_bool(value) is False


class TestEnvironment:
    """Tests for DASH0_* environment overrides."""

    def test_auth_token(self):
        """Test DASH0_AUTH_TOKEN is read."""
        settings = load_settings(environ={"DASH0_AUTH_TOKEN": "primary"})

        assert settings.auth_token == "primary"

    def test_token_fallback(self):
        """Test DASH0_TOKEN is used when DASH0_AUTH_TOKEN is absent."""
        settings = load_settings(environ={"DASH0_TOKEN": "fallback"})

        assert settings.auth_token == "fallback"

    def test_auth_token_preferred_over_fallback(self):
        environ = {"DASH0_AUTH_TOKEN": "primary", "DASH0_TOKEN": "fallback"}

        assert load_settings(environ=environ).auth_token == "primary"

    def test_region(self):
        """Test DASH0_REGION selects the base URL."""
        settings = load_settings(environ={"DASH0_REGION": "us-west-2"})

        assert settings.region == "us-west-2"
        assert settings.base_url == "https://api.us-west-2.aws.dash0.com"

    def test_url_as_region(self):
        """Test a full URL given as the region becomes the base URL."""
        settings = load_settings(environ={"DASH0_REGION": "https://api.us-east-1.aws.dash0.com"})

        assert settings.base_url == "https://api.us-east-1.aws.dash0.com"
        assert settings.region == "us-east-1"

    def test_host_as_region(self):
        """Test a bare API host given as the region gets an HTTPS scheme."""
        settings = load_settings(environ={"DASH0_REGION": "api.eu-west-1.aws.dash0.com"})

        assert settings.base_url == "https://api.eu-west-1.aws.dash0.com"
        assert settings.region == "eu-west-1"

    def test_base_url(self):
        settings = load_settings(environ={"DASH0_BASE_URL": "https://proxy.example.test"})

        assert settings.base_url == "https://proxy.example.test"

    def test_dataset_debug_timeout(self):
        """Test the remaining optional settings."""
        environ = {"DASH0_DATASET": "staging", "DASH0_DEBUG": "yes", "DASH0_TIMEOUT": "15"}

        settings = load_settings(environ=environ)

        assert settings.dataset == "staging"
        assert settings.debug is True
        assert settings.timeout_seconds == 15.0

    def test_invalid_timeout_ignored(self):
        """Test an unparseable DASH0_TIMEOUT keeps the default."""
        settings = load_settings(environ={"DASH0_TIMEOUT": "soon"})

        assert settings.timeout_seconds == 60.0

    def test_empty_environment(self):
        settings = load_settings(environ={})

        assert settings.auth_token is None
        assert settings.region == "eu-west-1"


class TestYamlFile:
    """Tests for loading settings from a YAML file."""

    def test_load_file(self, tmp_path):
        """Test settings keys are read from the file."""
        path = tmp_path / "settings.yaml"
        path.write_text("auth_token: from-file\nregion: us-east-1\ndataset: prod\n")

        settings = load_settings(str(path), environ={})

        assert settings.auth_token == "from-file"
        assert settings.base_url == "https://api.us-east-1.aws.dash0.com"
        assert settings.dataset == "prod"

    def test_environment_overrides_file(self, tmp_path):
        """Test environment values take precedence over the file."""
        path = tmp_path / "settings.yaml"
        path.write_text("auth_token: from-file\ndataset: prod\n")

        settings = load_settings(str(path), environ={"DASH0_AUTH_TOKEN": "from-env"})

        assert settings.auth_token == "from-env"
        assert settings.dataset == "prod"

    def test_variable_expansion(self, tmp_path, monkeypatch):
        """Test ${VAR} placeholders are expanded from the process environment."""
        monkeypatch.setenv("TQ_TEST_TOKEN", "expanded")
        path = tmp_path / "settings.yaml"
        path.write_text("auth_token: ${TQ_TEST_TOKEN}\n")

        settings = load_settings(str(path), environ={})

        assert settings.auth_token == "expanded"

    def test_unresolved_variable_dropped(self, tmp_path, monkeypatch):
        """Test an unresolved placeholder falls back to the default."""
        monkeypatch.delenv("TQ_TEST_MISSING", raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text("dataset: ${TQ_TEST_MISSING}\n")

        settings = load_settings(str(path), environ={})

        assert settings.dataset is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("")

        assert load_settings(str(path), environ={}).region == "eu-west-1"

    def test_non_mapping_file(self, tmp_path):
        """Test a YAML list is rejected."""
        path = tmp_path / "settings.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_settings(str(path), environ={})

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_settings(str(tmp_path / "absent.yaml"), environ={})
