"""
Environment variable validation and security checks.

Run once at startup (see app.main lifespan). Hard errors abort startup;
missing optional integrations only log a warning and disable the feature.
"""

import sys
from typing import List, Optional, Tuple

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER_MARKERS = ("change", "your-", "example")


def validate_secret_key(key_name: str, key_value: Optional[str], min_length: int = 32) -> List[str]:
    errors = []

    if not key_value:
        errors.append(f"{key_name} is not set")
        return errors

    if len(key_value) < min_length:
        errors.append(
            f"{key_name} is too short (must be at least {min_length} characters)"
        )

    if any(marker in key_value.lower() for marker in PLACEHOLDER_MARKERS):
        errors.append(
            f"{key_name} appears to be a placeholder value - update with a real secret key"
        )

    return errors


def validate_database_url() -> List[str]:
    errors = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")
        return errors

    if not settings.DATABASE_URL.startswith("postgresql+asyncpg://"):
        errors.append(
            "DATABASE_URL must use asyncpg driver (format: postgresql+asyncpg://...)"
        )

    if settings.is_production and "kindred_password" in settings.DATABASE_URL:
        errors.append(
            "DATABASE_URL contains default password - update with a secure password in production"
        )

    return errors


def validate_redis_url() -> List[str]:
    errors = []

    if not settings.REDIS_URL:
        errors.append("REDIS_URL is not set")
        return errors

    if not settings.REDIS_URL.startswith(("redis://", "rediss://")):
        errors.append(
            "REDIS_URL must start with redis:// or rediss:// (format: redis://host:port/db)"
        )

    return errors


def optional_integrations() -> dict[str, bool]:
    """Which optional integrations have credentials configured."""
    return {
        "google_login": bool(settings.GOOGLE_CLIENT_ID),
        "myanimelist": bool(settings.MAL_CLIENT_ID),
        "myanimelist_oauth": bool(settings.MAL_CLIENT_ID and settings.MAL_CLIENT_SECRET),
        "spotify": bool(settings.SPOTIFY_CLIENT_ID and settings.SPOTIFY_CLIENT_SECRET),
        "tmdb_posters": bool(settings.TMDB_API_KEY),
        "anthropic": bool(settings.ANTHROPIC_API_KEY),
    }


def warn_missing_integrations() -> List[str]:
    """Log (and return) a warning for each optional integration left unconfigured."""
    messages = {
        "google_login": "GOOGLE_CLIENT_ID not set - Google sign-in will be rejected",
        "myanimelist": "MAL_CLIENT_ID not set - MyAnimeList imports will be disabled",
        "myanimelist_oauth": "MAL_CLIENT_SECRET not set - MyAnimeList OAuth connect will be disabled",
        "spotify": "Spotify credentials not set - Spotify imports will be disabled",
        "tmdb_posters": "TMDB_API_KEY not set - movie posters will not be fetched",
        "anthropic": "ANTHROPIC_API_KEY not set - chat is disabled and insights use the rule-based fallback",
    }
    warnings = [
        messages[name]
        for name, enabled in optional_integrations().items()
        if not enabled
    ]
    for warning in warnings:
        logger.warning("environment_validation_warning", message=warning)
    return warnings


def validate_production_settings() -> List[str]:
    errors = []

    if not settings.is_production:
        return errors

    if settings.DEBUG:
        errors.append("DEBUG must be false in production")

    if "localhost" in ",".join(settings.ALLOWED_ORIGINS):
        logger.warning(
            "localhost_in_allowed_origins",
            message="ALLOWED_ORIGINS includes localhost in production - may be insecure"
        )

    if settings.LOG_FORMAT != "json":
        logger.warning(
            "log_format_not_json",
            message="LOG_FORMAT should be 'json' in production for log aggregation"
        )

    return errors


def validate_environment() -> Tuple[bool, List[str]]:
    """
    Validate all environment variables.

    Returns:
        (is_valid, list_of_errors)
    """
    all_errors = []

    logger.info(
        "validating_environment",
        app_env=settings.APP_ENV,
        app_name=settings.APP_NAME
    )

    all_errors.extend(validate_secret_key("SECRET_KEY", settings.SECRET_KEY))
    all_errors.extend(validate_database_url())
    all_errors.extend(validate_redis_url())
    warn_missing_integrations()

    if settings.is_production:
        all_errors.extend(validate_production_settings())

    if all_errors:
        logger.error(
            "environment_validation_failed",
            errors=all_errors,
            error_count=len(all_errors)
        )
        return False, all_errors

    logger.info(
        "environment_validation_successful",
        app_env=settings.APP_ENV,
        features_enabled=optional_integrations(),
    )
    return True, []


def validate_or_exit():
    """Validate the environment and exit the process on failure."""
    is_valid, errors = validate_environment()

    if not is_valid:
        logger.critical(
            "startup_aborted_invalid_environment",
            errors=errors
        )
        print("\nENVIRONMENT VALIDATION FAILED\n")
        print("The following configuration errors were found:\n")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")
        print("\nPlease fix these errors and restart the application.\n")
        sys.exit(1)

    logger.info("environment_validation_passed")
