"""Configuration package for the practice tracker."""

from practice.config.app_config import (
    AppConfig,
    AuthConfig,
    ProviderConfig,
    RateLimitPreset,
    ReviewConfig,
    clear_config_cache,
    get_provider_config,
    get_rate_limit_preset,
    load_app_config,
)
from practice.config.logging_config import configure_logging

__all__ = [
    "AppConfig",
    "AuthConfig",
    "ProviderConfig",
    "RateLimitPreset",
    "ReviewConfig",
    "clear_config_cache",
    "configure_logging",
    "get_provider_config",
    "get_rate_limit_preset",
    "load_app_config",
]
