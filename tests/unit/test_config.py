"""
Unit Tests for Configuration Management
Tests settings validation and property methods
"""

import pytest
from pydantic import ValidationError

from reimbursement.core.config import WorkflowSettings, get_settings


@pytest.fixture
def clean_env(monkeypatch):
    """Drop workflow variables so defaults apply."""
    for name in ("ENVIRONMENT", "LOG_LEVEL", "JSON_LOGS", "DATABASE_URL", "CORS_ORIGINS"):
        monkeypatch.delenv(f"REIMBURSEMENT_{name}", raising=False)
    monkeypatch.chdir("/")


@pytest.mark.unit
class TestSettingsDefaults:
    """Test default configuration values"""

    def test_defaults(self, clean_env):
        settings = WorkflowSettings()

        assert settings.ENVIRONMENT == "development"
        assert settings.LOG_LEVEL == "INFO"
        assert settings.DATABASE_URL.startswith("sqlite+aiosqlite://")
        assert settings.API_PREFIX == "/api/v1"
        assert settings.ROLE_HEADER == "X-Actor-Role"
        assert settings.CORS_ORIGINS == ["http://localhost:3000"]

    def test_env_prefix(self, clean_env, monkeypatch):
        """Test variables are read with the REIMBURSEMENT_ prefix"""
        monkeypatch.setenv("REIMBURSEMENT_ENVIRONMENT", "staging")
        monkeypatch.setenv("REIMBURSEMENT_DATABASE_URL", "postgresql+asyncpg://db/reimb")
        monkeypatch.setenv("REIMBURSEMENT_CORS_ORIGINS", '["https://a.example", "https://b.example"]')

        settings = WorkflowSettings()

        assert settings.ENVIRONMENT == "staging"
        assert settings.DATABASE_URL == "postgresql+asyncpg://db/reimb"
        assert settings.CORS_ORIGINS == ["https://a.example", "https://b.example"]
        assert not settings.is_sqlite

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


@pytest.mark.unit
class TestSettingsValidation:
    """Test configuration validation"""

    def test_environment_literal_validation(self, clean_env):
        """Test that ENVIRONMENT only accepts valid values"""
        for env in ["development", "staging", "production", "testing"]:
            assert WorkflowSettings(ENVIRONMENT=env).ENVIRONMENT == env

        with pytest.raises(ValidationError):
            WorkflowSettings(ENVIRONMENT="qa")

    def test_log_level_is_normalized(self, clean_env):
        assert WorkflowSettings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_unknown_log_level(self, clean_env):
        with pytest.raises(ValidationError) as exc_info:
            WorkflowSettings(LOG_LEVEL="chatty")

        assert any("LOG_LEVEL" in str(error) for error in exc_info.value.errors())

    @pytest.mark.parametrize(
        "value,expected",
        [("api/v2/", "/api/v2"), ("/api/v1", "/api/v1"), ("", "")],
    )
    def test_api_prefix_normalization(self, clean_env, value, expected):
        assert WorkflowSettings(API_PREFIX=value).API_PREFIX == expected

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("https://a.example, https://b.example", ["https://a.example", "https://b.example"]),
            ('["https://a.example"]', ["https://a.example"]),
            ("", []),
        ],
    )
    def test_cors_origins_parsing(self, clean_env, value, expected):
        assert WorkflowSettings(CORS_ORIGINS=value).CORS_ORIGINS == expected


@pytest.mark.unit
class TestSettingsProperties:
    """Test helper properties"""

    def test_environment_flags(self, clean_env):
        assert WorkflowSettings(ENVIRONMENT="production").is_production
        assert WorkflowSettings(ENVIRONMENT="testing").is_testing
        assert not WorkflowSettings(ENVIRONMENT="staging").is_production

    def test_json_logs_follows_environment(self, clean_env):
        assert WorkflowSettings(ENVIRONMENT="production").json_logs
        assert not WorkflowSettings(ENVIRONMENT="development").json_logs

    def test_json_logs_override(self, clean_env):
        assert not WorkflowSettings(ENVIRONMENT="production", JSON_LOGS=False).json_logs
        assert WorkflowSettings(ENVIRONMENT="development", JSON_LOGS=True).json_logs

    def test_is_sqlite(self, clean_env):
        assert WorkflowSettings().is_sqlite
