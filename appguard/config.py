"""Runtime configuration based on environment variables."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    dsn: str = Field(
        default="sqlite+aiosqlite:///./appguard.db",
        description="SQLAlchemy async DSN; any async driver works.",
    )
    pool_size: int = Field(default=5, ge=1, le=50)
    max_overflow: int = Field(default=10, ge=0, le=100)
    echo: bool = False
    pool_recycle: int = Field(default=3600, ge=30)
    pool_pre_ping: bool = Field(default=True)

    @property
    def is_sqlite(self) -> bool:
        return self.dsn.startswith("sqlite")


class MonitorSettings(BaseModel):
    self_package: str = Field(
        default="appguard",
        description="Package name of the monitor itself; never blocked.",
    )
    ignored_packages: list[str] = Field(default_factory=list)
    evaluation_timeout_seconds: float = Field(default=5.0, gt=0, le=120)
    reload_attempts: int = Field(default=3, ge=1, le=10)
    reload_base_delay: float = Field(default=0.5, ge=0)


class GuardSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    environment: Literal["dev", "staging", "prod"] = "dev"
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    enabled: bool = Field(default=True, description="Global monitoring switch.")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    monitor: MonitorSettings = Field(default_factory=MonitorSettings)


@lru_cache
def get_settings() -> GuardSettings:
    """Return cached settings instance."""

    return GuardSettings()


__all__ = [
    "DatabaseSettings",
    "GuardSettings",
    "MonitorSettings",
    "get_settings",
]
