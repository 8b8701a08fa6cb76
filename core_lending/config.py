"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based
configuration. The settings object is frozen so a single instance can be passed
into every entry point of the engine and shared across batch workers.
"""

from decimal import Decimal
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


def _default_provisioning_rates() -> Dict[str, Decimal]:
    return {
        "normal": Decimal("0.01"),
        "watch": Decimal("0.05"),
        "substandard": Decimal("0.25"),
        "doubtful": Decimal("0.50"),
        "loss": Decimal("1.00"),
    }


class LendingConfig(BaseSettings):
    """Lending engine configuration"""

    # Validation bounds
    min_loan_amount: Decimal = Decimal("1000")
    max_storable_value: Decimal = Decimal("9999999999999.99")  # NUMERIC(15,2) ceiling
    max_term_months: int = 480
    max_installments: int = 480
    max_grace_period_months: int = 12

    # Provisioning policy, keyed by classification tier value
    provisioning_rates: Dict[str, Decimal] = Field(default_factory=_default_provisioning_rates)

    # Batch processing
    batch_max_workers: int = 1

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    class Config:
        env_prefix = "LENDING_"
        env_file = ".env"
        case_sensitive = False
        frozen = True


# Global configuration instance
config = LendingConfig()


def get_config() -> LendingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LendingConfig:
    """Reload configuration from environment"""
    global config
    config = LendingConfig()
    return config


def resolve_config(override: Optional[LendingConfig] = None) -> LendingConfig:
    """Return the explicit config if one was passed, else the global one"""
    return override if override is not None else get_config()
