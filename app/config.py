"""
PayMaster - Configuration Settings

This module handles all application configuration using Pydantic Settings.
Environment variables are loaded from .env file.
"""

from decimal import Decimal
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # ===========================================
    # APPLICATION CONFIGURATION
    # ===========================================
    app_name: str = "PayMaster Payroll Engine"
    app_env: str = "development"
    debug: bool = False
    api_version: str = "v1"
    log_level: str = "INFO"

    # ===========================================
    # DATABASE CONFIGURATION
    # ===========================================
    database_url_async: str = "sqlite+aiosqlite:///./paymaster.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # ===========================================
    # CORS
    # ===========================================
    cors_origins: str = "*"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # ===========================================
    # PAYROLL ENGINE
    # ===========================================
    payroll_currency: str = "KWD"
    payroll_include_on_leave: bool = False
    payroll_vacation_pay_policy: str = "none"  # none | prorate
    payroll_default_working_days: int = 26

    # ===========================================
    # LOAN POLICY
    # ===========================================
    loan_salary_warning_ratio: Decimal = Decimal("0.35")
    loan_salary_violation_ratio: Decimal = Decimal("0.50")
    loan_pause_marker: str = "[pause-loans]"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env.lower() == "development"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url_async.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
