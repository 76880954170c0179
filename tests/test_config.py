"""
Tests for configuration loading
"""

import pytest
from pydantic import ValidationError

from loan_engine import config as config_module
from loan_engine.config import LoanEngineConfig, get_config, reload_config


class TestLoanEngineConfig:
    """Test settings defaults, environment overrides and validation"""

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "LOG_LEVEL", "LOG_FORMAT", "OVERPAYMENT_POLICY"):
            monkeypatch.delenv(f"LOAN_ENGINE_{name}", raising=False)

        config = LoanEngineConfig()

        assert config.database_url == "memory://"
        assert config.log_level == "INFO"
        assert config.log_format == "json"
        assert config.log_file is None
        assert config.enable_audit_logging is True
        assert config.overpayment_policy == "ignore"

    def test_environment_overrides(self, monkeypatch):
        """Test that LOAN_ENGINE_* variables override defaults"""
        monkeypatch.setenv("LOAN_ENGINE_DATABASE_URL", "sqlite:///loans.db")
        monkeypatch.setenv("LOAN_ENGINE_LOG_LEVEL", "debug")
        monkeypatch.setenv("LOAN_ENGINE_OVERPAYMENT_POLICY", "REJECT")
        monkeypatch.setenv("LOAN_ENGINE_ENABLE_AUDIT_LOGGING", "false")

        config = LoanEngineConfig()

        assert config.database_url == "sqlite:///loans.db"
        assert config.log_level == "DEBUG"
        assert config.overpayment_policy == "reject"
        assert config.enable_audit_logging is False

    @pytest.mark.parametrize("field,value", [
        ("log_level", "LOUD"),
        ("log_format", "xml"),
        ("overpayment_policy", "refund"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            LoanEngineConfig(**{field: value})

    def test_reload_config(self, monkeypatch):
        """Test that reload_config replaces the global instance"""
        monkeypatch.setattr(config_module, "config", config_module.config)
        monkeypatch.setenv("LOAN_ENGINE_LOG_FORMAT", "text")

        reloaded = reload_config()

        assert reloaded.log_format == "text"
        assert get_config() is reloaded
