from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, ValidationError

from .constants import (
    ANDROID_DEV_API_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    DEV_API_BASE_URL,
    LOGGER,
    PRODUCTION_API_BASE_URL,
)


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_float(key: str, default: float | None) -> float | None:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a numeric value.")


def get_timeout() -> float:
    return _get_env_float("LEX_API_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)


def get_refresh_timeout() -> float | None:
    return _get_env_float("LEX_REFRESH_TIMEOUT", None)


def resolve_api_base_url() -> str:
    """Pick the API base URL: explicit override, then dev defaults, then production."""
    explicit = os.getenv("LEX_API_BASE_URL", "").strip()
    if explicit:
        return explicit

    if is_truthy(os.getenv("LEX_API_DEV")):
        # Android emulators reach the host machine through 10.0.2.2.
        if os.getenv("LEX_API_PLATFORM", "").strip().lower() == "android":
            return ANDROID_DEV_API_BASE_URL
        return DEV_API_BASE_URL

    return PRODUCTION_API_BASE_URL


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path, override=True)


def validate_env() -> None:
    base_url = resolve_api_base_url()
    try:
        AnyHttpUrl(base_url)
    except ValidationError as error:
        raise RuntimeError(
            f"LEX_API_BASE_URL must be a valid HTTP(S) URL, got {base_url!r}."
        ) from error

    timeout = get_timeout()
    if timeout is not None and timeout <= 0:
        raise RuntimeError("LEX_API_TIMEOUT must be greater than zero.")

    refresh_timeout = get_refresh_timeout()
    if refresh_timeout is not None and refresh_timeout <= 0:
        raise RuntimeError("LEX_REFRESH_TIMEOUT must be greater than zero.")

    if base_url.startswith("http://") and not is_truthy(os.getenv("LEX_API_DEV")):
        LOGGER.warning("API base URL %s is not using HTTPS.", base_url)


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("LEX_API_DEBUG", "0"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
