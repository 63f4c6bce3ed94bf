"""
Configuration Management for Personal Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage location, retention policy and balance tolerance are all
visible in one place and validated at startup.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Snapshot and backup storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path(".ledger"),
        description="Directory holding the snapshot and backup files"
    )
    snapshot_key: str = Field(
        default="personal_ledger_react_v1",
        min_length=1,
        description="Key of the live snapshot slot"
    )
    backup_prefix: str = Field(
        default="ledger_backup_",
        min_length=1,
        description="Key prefix shared by all backups"
    )
    max_backups: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Number of most recent backups to retain"
    )
    backup_version: str = Field(
        default="2.0",
        description="Format version stamped into every backup"
    )
    auto_backup_every: int = Field(
        default=10,
        ge=0,
        description="Take an automatic backup every N saves (0 disables)"
    )

    @field_validator("backup_prefix")
    @classmethod
    def validate_backup_prefix(cls, v: str) -> str:
        """Backup keys become file names, so no path separators."""
        if "/" in v or "\\" in v:
            raise ValueError("Backup prefix cannot contain path separators")
        return v


class LedgerSettings(BaseSettings):
    """Accounting engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    balance_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Maximum allowed |total debit - total credit| on save"
    )
    account_id_prefix: str = Field(default="acc_")
    transaction_id_prefix: str = Field(default="tx_")
    line_id_prefix: str = Field(default="ln_")


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum log level"
    )
    json_output: bool = Field(
        default=True,
        description="Render logs as JSON (False: human-readable console)"
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return str(v).upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with a
    `<name>_error` entry for each section that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("storage", "ledger", "logging"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
