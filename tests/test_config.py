"""
Tests for the configuration layer.
"""
import pytest

from record_gateway.config import (
    BackendConfig,
    LoggingConfig,
    Settings,
    configure,
    get_settings,
    load_env,
    reset_settings,
)
from record_gateway.errors import InvalidConfigError


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for name in ("BACKEND", "BASE_URL", "API_KEY", "TIMEOUT", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(f"GATEWAY_{name}", raising=False)
    reset_settings()
    yield
    reset_settings()


class TestBackendConfig:
    """Test backend configuration."""

    def test_defaults(self):
        config = BackendConfig()

        assert config.kind == "memory"
        assert config.timeout == 30.0
        assert config.required_fields == {}

    def test_http_requires_base_url(self):
        with pytest.raises(InvalidConfigError):
            BackendConfig(kind="http")

    def test_http_url_scheme(self):
        with pytest.raises(InvalidConfigError):
            BackendConfig(kind="http", base_url="ftp://records")

    def test_unknown_kind(self):
        with pytest.raises(InvalidConfigError):
            BackendConfig(kind="grpc")

    def test_timeout_positive(self):
        with pytest.raises(ValueError):
            BackendConfig(timeout=0)


class TestLoggingConfig:
    """Test logging configuration."""

    def test_invalid_level(self):
        with pytest.raises(InvalidConfigError):
            LoggingConfig(level="LOUD")

    def test_invalid_format(self):
        with pytest.raises(InvalidConfigError):
            LoggingConfig(format="xml")


class TestSettings:
    """Test settings loading."""

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GATEWAY_BACKEND", "HTTP")
        monkeypatch.setenv("GATEWAY_BASE_URL", "https://records.example.com")
        monkeypatch.setenv("GATEWAY_TIMEOUT", "5")
        monkeypatch.setenv("GATEWAY_LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.backend.kind == "http"
        assert settings.backend.base_url == "https://records.example.com"
        assert settings.backend.timeout == 5.0
        assert settings.logging.level == "DEBUG"

    def test_from_env_bad_timeout(self, monkeypatch):
        monkeypatch.setenv("GATEWAY_TIMEOUT", "soon")

        with pytest.raises(InvalidConfigError):
            Settings.from_env()

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("RG_LOG_FORMAT", "JSON")

        assert Settings.from_env(prefix="RG_").logging.format == "json"

    def test_custom_prefix_api_key(self, monkeypatch):
        monkeypatch.setenv("GATEWAY_API_KEY", "default-key")
        monkeypatch.setenv("RG_API_KEY", "rg-key")

        assert Settings.from_env(prefix="RG_").backend.api_key == "rg-key"

        monkeypatch.delenv("RG_API_KEY")

        assert Settings.from_env(prefix="RG_").backend.api_key is None
        assert Settings.from_env().backend.api_key == "default-key"

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "gateway.yaml"
        path.write_text(
            "backend:\n"
            "  kind: memory\n"
            "  required_fields:\n"
            "    Account: [Name]\n"
            "logging:\n"
            "  level: WARNING\n"
            "  log_responses: false\n"
        )

        settings = Settings.from_file(path)

        assert settings.backend.required_fields == {"Account": ["Name"]}
        assert settings.logging.level == "WARNING"
        assert settings.logging.log_responses is False

    def test_from_toml(self, tmp_path):
        path = tmp_path / "gateway.toml"
        path.write_text('[backend]\nkind = "http"\nbase_url = "http://localhost:9000"\ntimeout = 2.5\n')

        settings = Settings.from_file(path)

        assert settings.backend.kind == "http"
        assert settings.backend.timeout == 2.5

    def test_schema_violation(self, tmp_path):
        path = tmp_path / "gateway.yaml"
        path.write_text("backend:\n  kind: http\n")

        with pytest.raises(InvalidConfigError, match="validation failed"):
            Settings.from_file(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "gateway.yaml"
        path.write_text("backend:\n  kind: memory\n  retries: 3\n")

        with pytest.raises(InvalidConfigError):
            Settings.from_file(path)

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "gateway.ini"
        path.write_text("")

        with pytest.raises(InvalidConfigError):
            Settings.from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Settings.from_file(tmp_path / "absent.yaml")

    def test_to_dict(self):
        d = Settings().to_dict()

        assert d["backend"]["kind"] == "memory"
        assert d["logging"]["format"] == "text"


class TestGlobalSettings:
    """Test global settings helpers."""

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_configure_section(self):
        settings = configure(logging=LoggingConfig(level="ERROR"))

        assert get_settings() is settings
        assert settings.logging.level == "ERROR"

    def test_configure_unknown_section(self):
        with pytest.raises(InvalidConfigError):
            configure(cache={})

    def test_load_env(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("GATEWAY_LOG_LEVEL=ERROR\n")
        monkeypatch.setenv("GATEWAY_LOG_LEVEL", "INFO")

        assert load_env(str(env_file), override=True) is True
        assert get_settings().logging.level == "ERROR"
