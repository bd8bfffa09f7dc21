"""Helper utilities shared across datastore backends."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Optional

from datastore.config.durations import parse_duration
from datastore.config.models import DataStoreConfig
from datastore.exceptions import ConfigValidationError

DEFAULT_TIMEOUT_SECONDS = 30.0


def normalize_prefix(prefix: Optional[str]) -> str:
    """Normalize storage prefix strings by stripping slashes/spaces."""
    if not prefix:
        return ""
    return str(prefix).strip("/ ")


def get_env_value(key: Optional[str]) -> Optional[str]:
    """Return the environment value for the requested key if present."""
    if not key:
        return None
    return os.environ.get(key)


def parse_timeout(
    config: DataStoreConfig, key: str = "timeout", default: float = DEFAULT_TIMEOUT_SECONDS
) -> Optional[float]:
    """Read a duration param in seconds; ``0`` means no timeout (None)."""
    raw = config.get(key)
    if raw is None:
        return default
    try:
        seconds = parse_duration(raw)
    except ValueError as exc:
        raise ConfigValidationError(f"invalid {key}: {exc}", key=key) from exc
    if seconds < 0:
        raise ConfigValidationError(f"invalid {key}: must not be negative", key=key)
    return seconds or None


def parse_positive_int(config: DataStoreConfig, key: str, default: int) -> int:
    raw = config.get(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigValidationError(f"invalid {key}: {raw!r} is not an integer", key=key) from exc
    if value <= 0:
        raise ConfigValidationError(f"invalid {key}: must be positive", key=key)
    return value


def to_http_date(value: datetime) -> str:
    """Format a datetime as an RFC 7231 HTTP-date."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def parse_http_date(value: str) -> datetime:
    """Parse an HTTP-date header into an aware UTC datetime.

    Raises:
        ValueError: If the value is not a valid HTTP-date
    """
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, IndexError) as exc:
        raise ValueError(f"invalid HTTP date {value!r}") from exc
    if parsed is None:
        raise ValueError(f"invalid HTTP date {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
