"""
Configuration module for pkio.

Centralizes key-generation and logging settings with environment variable
support, validation, and caching.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict

# ============================================================
# Environment Configuration
# ============================================================

DEFAULT_RSA_KEY_SIZE = 2048
DEFAULT_EC_CURVE = "secp256r1"
DEFAULT_SALT_SIZE = 16

MIN_RSA_KEY_SIZE = 2048
MIN_SALT_SIZE = 16

SUPPORTED_EC_CURVES = ("secp256r1", "secp384r1", "secp521r1")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot of pkio configuration."""
    rsa_key_size: int = DEFAULT_RSA_KEY_SIZE
    ec_curve: str = DEFAULT_EC_CURVE
    salt_size: int = DEFAULT_SALT_SIZE
    log_level: str = "INFO"
    log_json: bool = True


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "")
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes")


def validate_settings(settings: Settings) -> Settings:
    """
    Check that settings are usable for key generation.

    Raises:
        ValueError: If any value is out of range
    """
    if settings.rsa_key_size < MIN_RSA_KEY_SIZE:
        raise ValueError(
            f"PKIO_RSA_KEY_SIZE must be at least {MIN_RSA_KEY_SIZE}, got {settings.rsa_key_size}"
        )
    if settings.ec_curve not in SUPPORTED_EC_CURVES:
        raise ValueError(
            f"PKIO_EC_CURVE must be one of {list(SUPPORTED_EC_CURVES)}, got {settings.ec_curve!r}"
        )
    if settings.salt_size < MIN_SALT_SIZE:
        raise ValueError(
            f"PKIO_SALT_SIZE must be at least {MIN_SALT_SIZE}, got {settings.salt_size}"
        )
    if settings.log_level not in LOG_LEVELS:
        raise ValueError(f"PKIO_LOG_LEVEL must be one of {list(LOG_LEVELS)}")
    return settings


def settings_from_env() -> Settings:
    """Build settings from PKIO_* environment variables."""
    settings = Settings(
        rsa_key_size=_env_int("PKIO_RSA_KEY_SIZE", DEFAULT_RSA_KEY_SIZE),
        ec_curve=os.getenv("PKIO_EC_CURVE", DEFAULT_EC_CURVE).lower(),
        salt_size=_env_int("PKIO_SALT_SIZE", DEFAULT_SALT_SIZE),
        log_level=os.getenv("PKIO_LOG_LEVEL", "INFO").upper(),
        log_json=_env_bool("PKIO_LOG_JSON", True),
    )
    return validate_settings(settings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once and cache them."""
    return settings_from_env()


def reload_settings() -> Settings:
    """Drop the cached settings and re-read the environment."""
    get_settings.cache_clear()
    return get_settings()


def describe_settings() -> Dict[str, str]:
    """Settings as strings, for CLI and log output."""
    s = get_settings()
    return {
        "rsa_key_size": str(s.rsa_key_size),
        "ec_curve": s.ec_curve,
        "salt_size": str(s.salt_size),
        "log_level": s.log_level,
        "log_json": str(s.log_json).lower(),
    }
