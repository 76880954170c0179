"""
Configuration Management Module

Centralized engine configuration using pydantic-settings. Every setting can be
overridden with a LOAN_ENGINE_* environment variable or a .env file.
"""

import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class LoanEngineConfig(BaseSettings):
    """Loan engine configuration"""

    # Storage configuration
    database_url: str = "memory://"  # memory:// or sqlite:///path/to/file.db

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stderr

    # Business rules configuration
    enable_audit_logging: bool = True
    overpayment_policy: str = "ignore"  # ignore or reject

    class Config:
        env_prefix = "LOAN_ENGINE_"
        env_file = ".env"
        case_sensitive = False

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return fmt

    @field_validator("overpayment_policy")
    @classmethod
    def _check_overpayment_policy(cls, value: str) -> str:
        policy = value.lower()
        if policy not in ("ignore", "reject"):
            raise ValueError("overpayment_policy must be 'ignore' or 'reject'")
        return policy


# Global configuration instance
config = LoanEngineConfig()


def get_config() -> LoanEngineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LoanEngineConfig:
    """Reload configuration from environment"""
    global config
    config = LoanEngineConfig()
    return config
