"""Application configuration loader.

Loads centralized configuration from config/app_config_v1.yaml (or the
file named by PRACTICE_CONFIG) with fallback to built-in defaults.

Usage:
    from practice.config.app_config import load_app_config, get_provider_config

    config = load_app_config()
    provider = get_provider_config("openai")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("config/app_config_v1.yaml")
CONFIG_ENV = "PRACTICE_CONFIG"

DEV_JWT_SECRET = "dev-insecure-jwt-secret-change-me"


@dataclass
class ProviderConfig:
    """Configuration for a single LLM provider."""

    base_url: str | None
    default_model: str
    api_key_env: str | None = None

    def get_api_key(self) -> str | None:
        """Get API key from environment variable."""
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class AuthConfig:
    """JWT and cookie settings."""

    jwt_secret_env: str = "JWT_SECRET"
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 7
    cookie_name: str = "auth-token"
    cookie_secure: bool = False
    bcrypt_rounds: int = 12

    def get_jwt_secret(self) -> str:
        """Get signing secret, falling back to the development secret."""
        secret = os.environ.get(self.jwt_secret_env)
        if not secret:
            logger.warning("jwt_secret_missing", env=self.jwt_secret_env)
            return DEV_JWT_SECRET
        return secret


@dataclass
class RateLimitPreset:
    """A fixed-window limit."""

    max_requests: int
    window_seconds: int


@dataclass
class ReviewConfig:
    """Spaced repetition defaults."""

    default_intervals: list[int] = field(
        default_factory=lambda: [1, 3, 7, 14, 30, 90, 180, 365]
    )
    potd_retention_days: int = 7


@dataclass
class AppConfig:
    """Application-wide configuration."""

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    default_provider: str = "openai"
    auth: AuthConfig = field(default_factory=AuthConfig)
    rate_limits: dict[str, RateLimitPreset] = field(default_factory=dict)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    database_path: str = "db/practice.db"
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "providers": {
            "openai": {
                "base_url": None,
                "default_model": "gpt-3.5-turbo",
                "api_key_env": "OPENAI_API_KEY",
            },
            "gemini": {
                "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
                "default_model": "gemini-1.5-flash",
                "api_key_env": "GEMINI_API_KEY",
            },
        },
        "default_provider": "openai",
        "auth": {
            "jwt_secret_env": "JWT_SECRET",
            "jwt_algorithm": "HS256",
            "token_ttl_days": 7,
            "cookie_name": "auth-token",
            "bcrypt_rounds": 12,
        },
        "rate_limits": {
            "AUTH": {"max_requests": 5, "window_seconds": 15 * 60},
            "API": {"max_requests": 100, "window_seconds": 60},
            "AI": {"max_requests": 10, "window_seconds": 60 * 60},
            "READ_ONLY": {"max_requests": 200, "window_seconds": 60},
            "PUBLIC": {"max_requests": 50, "window_seconds": 60},
        },
        "review": {
            "default_intervals": [1, 3, 7, 14, 30, 90, 180, 365],
            "potd_retention_days": 7,
        },
        "database": {"path": "db/practice.db"},
        "environment": "development",
        "log_level": "INFO",
    }


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    providers = {}
    for name, pconfig in data.get("providers", {}).items():
        providers[name] = ProviderConfig(
            base_url=pconfig.get("base_url"),
            default_model=pconfig.get("default_model", "default"),
            api_key_env=pconfig.get("api_key_env"),
        )

    environment = os.environ.get("ENVIRONMENT", data.get("environment", "development"))
    environment = environment.lower()

    auth_data = data.get("auth", {})
    auth = AuthConfig(
        jwt_secret_env=auth_data.get("jwt_secret_env", "JWT_SECRET"),
        jwt_algorithm=auth_data.get("jwt_algorithm", "HS256"),
        token_ttl_days=auth_data.get("token_ttl_days", 7),
        cookie_name=auth_data.get("cookie_name", "auth-token"),
        cookie_secure=auth_data.get("cookie_secure", environment == "production"),
        bcrypt_rounds=auth_data.get("bcrypt_rounds", 12),
    )

    rate_limits = {
        name.upper(): RateLimitPreset(
            max_requests=int(preset["max_requests"]),
            window_seconds=int(preset["window_seconds"]),
        )
        for name, preset in data.get("rate_limits", {}).items()
    }

    review_data = data.get("review", {})
    review = ReviewConfig(
        default_intervals=list(
            review_data.get("default_intervals", [1, 3, 7, 14, 30, 90, 180, 365])
        ),
        potd_retention_days=review_data.get("potd_retention_days", 7),
    )

    return AppConfig(
        providers=providers,
        default_provider=data.get("default_provider", "openai"),
        auth=auth,
        rate_limits=rate_limits,
        review=review,
        database_path=data.get("database", {}).get("path", "db/practice.db"),
        environment=environment,
        log_level=os.environ.get("LOG_LEVEL", data.get("log_level", "INFO")).upper(),
    )


def _config_path() -> Path:
    override = os.environ.get(CONFIG_ENV)
    return Path(override) if override else CONFIG_FILE


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, merged over the defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    data = _get_defaults()
    path = _config_path()

    if path.exists():
        logger.debug("loading_app_config", source=str(path))
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        data = _merge(data, loaded)
    else:
        logger.info("using_default_config", looked_at=str(path))

    _cached_config = _parse_config(data)
    return _cached_config


def get_provider_config(provider: str) -> ProviderConfig | None:
    """Get configuration for a specific provider.

    Args:
        provider: Provider name (e.g., "openai", "gemini")

    Returns:
        ProviderConfig or None if provider not found.
    """
    config = load_app_config()
    return config.providers.get(provider)


def get_rate_limit_preset(name: str) -> RateLimitPreset:
    """Get a rate limit preset by name (case-insensitive).

    Raises:
        KeyError: If the preset is not configured.
    """
    config = load_app_config()
    return config.rate_limits[name.upper()]


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
