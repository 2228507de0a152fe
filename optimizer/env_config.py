"""
Environment Configuration Helper

Provides robust parsing of environment variables, handling common issues
like trailing newlines and whitespace, plus a startup summary.

Usage:
    from optimizer.env_config import get_env, get_int_env, get_config_summary
"""

import os
from typing import Optional, Dict, Any

from .constants import (
    CANVAS_SIZE,
    PRODUCT_SCALE,
    BORDER_THICKNESS_PERCENT,
    MAX_FILE_SIZE_KB,
    ALLOWED_VARIANT_COUNTS,
)


class ConfigError(Exception):
    """Raised when a required configuration is missing or invalid."""
    pass


def get_env(
    name: str,
    default: Optional[str] = None,
    required: bool = False,
    strip: bool = True
) -> Optional[str]:
    """
    Get environment variable with robust sanitization.

    Args:
        name: Environment variable name
        default: Default value if not set
        required: Raise ConfigError if missing/empty
        strip: Strip whitespace/newlines (default True)

    Returns:
        Sanitized value or default

    Raises:
        ConfigError: If required and missing/empty after sanitization
    """
    value = os.getenv(name, "")

    if strip and value:
        value = value.strip()
        value = value.replace('\n', '').replace('\r', '')

    if not value:
        if required:
            raise ConfigError(f"Required environment variable '{name}' is not set or empty")
        return default

    return value


def get_int_env(name: str, default: Optional[int] = None) -> Optional[int]:
    """
    Get an integer environment variable.

    Raises:
        ConfigError: If set but not an integer
    """
    value = get_env(name)
    if value is None:
        return default

    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Environment variable '{name}' must be an integer, got '{value}'")


def get_config_summary() -> Dict[str, Any]:
    """
    Get a non-secret configuration summary for debugging.

    Returns dict with:
    - gemini_configured: bool
    - gemini_key_prefix: masked key
    - gemini_model / gemini_base_url
    - gemini_timeout_seconds: None means no client-side deadline
    - canvas constants
    - warnings: list of warnings
    """
    from .gemini_client import check_api_configuration

    warnings = []
    gemini = check_api_configuration()

    if not gemini["api_configured"]:
        warnings.append("GEMINI_API_KEY not set - background removal is unavailable")

    raw_timeout = get_env("GEMINI_TIMEOUT_SECONDS")
    if raw_timeout and gemini["timeout_seconds"] is None:
        warnings.append(f"GEMINI_TIMEOUT_SECONDS '{raw_timeout}' is not a positive number, ignored")

    return {
        "gemini_configured": gemini["api_configured"],
        "gemini_key_prefix": gemini["api_key_prefix"],
        "gemini_model": gemini["model"],
        "gemini_base_url": gemini["base_url"],
        "gemini_timeout_seconds": gemini["timeout_seconds"],
        "canvas_size": CANVAS_SIZE,
        "product_scale": PRODUCT_SCALE,
        "border_thickness_percent": BORDER_THICKNESS_PERCENT,
        "max_file_size_kb": MAX_FILE_SIZE_KB,
        "allowed_variant_counts": list(ALLOWED_VARIANT_COUNTS),
        "warnings": warnings,
    }


def validate_all_config() -> tuple[bool, list[str]]:
    """
    Validate all configuration on startup.

    Returns:
        Tuple of (all_valid, list_of_messages)
    """
    summary = get_config_summary()
    messages = []
    all_valid = True

    if summary["gemini_configured"]:
        messages.append(
            f"✅ Gemini configured (model: {summary['gemini_model']}, key: {summary['gemini_key_prefix']})"
        )
    else:
        messages.append("⚠️ GEMINI_API_KEY not set - variant generation will fail until it is configured")
        all_valid = False

    if summary["gemini_timeout_seconds"]:
        messages.append(f"ℹ️ Gemini request timeout: {summary['gemini_timeout_seconds']}s")
    else:
        messages.append("ℹ️ Gemini request timeout: none")

    for warning in summary["warnings"]:
        if "GEMINI_API_KEY" not in warning:
            messages.append(f"⚠️ {warning}")

    messages.append(
        f"ℹ️ Canvas {summary['canvas_size']}px, product {summary['product_scale']:.0%}, "
        f"border {summary['border_thickness_percent']:.0%}, budget {summary['max_file_size_kb']}KB"
    )

    return all_valid, messages


def startup_validation():
    """Run startup validation and print results."""
    print("=" * 60)
    print("🔧 Configuration Validation")
    print("=" * 60)

    _, messages = validate_all_config()
    for msg in messages:
        print(f"  {msg}")

    print("=" * 60)
