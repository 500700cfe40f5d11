"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class LendingBookConfig(BaseSettings):
    """Lending book configuration"""

    # Storage configuration
    use_sqlite: bool = True
    database_path: str = "lending_book.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    dashboard_port: int = 8893

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Overdue interest policy
    overdue_interest_model: str = "flat_daily"  # flat_daily or monthly_prorated
    daily_overdue_rate: str = "0.001"  # 0.1% per day on the base amount
    monthly_overdue_rate: str = "0.05"  # 5% per month, prorated over 30 days

    # Daily accrual scheduler
    scheduler_enabled: bool = True
    accrual_hour: int = 6
    accrual_minute: int = 0
    accrual_run_on_start: bool = True

    # Portfolio summary
    upcoming_window_days: int = 7
    currency_symbol: str = "$"

    class Config:
        env_prefix = "LENDING_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LendingBookConfig()


def get_config() -> LendingBookConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LendingBookConfig:
    """Reload configuration from environment"""
    global config
    config = LendingBookConfig()
    return config
