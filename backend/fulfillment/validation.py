from __future__ import annotations

from datetime import datetime
from typing import Any

from .errors import InvalidRequest
from .time_utils import parse_iso_datetime


# Maximum amount: 9,999,999.99 in major units (999,999,999 minor units)
MAX_AMOUNT_CENTS = 999_999_999

_MISSING = object()


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON bodies and query strings.

    Rejects booleans, floats, decimals and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidRequest(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise InvalidRequest(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if "." in stripped:
            raise InvalidRequest(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise InvalidRequest(f"{field} must be an integer")
    if isinstance(value, float):
        raise InvalidRequest(f"{field} must be an integer, not a decimal")
    raise InvalidRequest(f"{field} must be an integer")


def require_positive_int(value: Any, field: str) -> int:
    number = coerce_int(value, field)
    if number <= 0:
        raise InvalidRequest(f"{field} must be greater than zero")
    return number


def amount_cents(value: Any, field: str) -> int:
    """Non-negative money amount in minor units."""
    number = coerce_int(value, field)
    if number < 0:
        raise InvalidRequest(f"{field} must not be negative")
    if number > MAX_AMOUNT_CENTS:
        raise InvalidRequest(f"{field} exceeds maximum of {MAX_AMOUNT_CENTS}")
    return number


def optional_amount_cents(payload: dict, key: str, default: int = 0) -> int:
    value = payload.get(key)
    if value is None:
        return default
    return amount_cents(value, key)


def optional_int(payload: dict, key: str) -> int | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    return coerce_int(value, key)


def optional_bool(payload: dict, key: str, default: bool = False) -> bool:
    value = payload.get(key, _MISSING)
    if value is _MISSING or value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise InvalidRequest(f"{key} must be a boolean")


def require_text(value: Any, field: str, *, min_length: int = 1, max_length: int = 255) -> str:
    if not isinstance(value, str):
        raise InvalidRequest(f"{field} is required")
    text = value.strip()
    if len(text) < min_length:
        raise InvalidRequest(f"{field} must be at least {min_length} characters")
    if len(text) > max_length:
        raise InvalidRequest(f"{field} must be at most {max_length} characters")
    return text


def optional_text(payload: dict, key: str, *, max_length: int = 255) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequest(f"{key} must be a string")
    text = value.strip()
    if len(text) > max_length:
        raise InvalidRequest(f"{key} must be at most {max_length} characters")
    return text


def parse_instant(value: Any, field: str) -> datetime | None:
    """Parse an optional ISO-8601 instant into UTC-naive; unparsable input is rejected."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return parse_iso_datetime(value.isoformat())
    if not isinstance(value, str):
        raise InvalidRequest(f"{field} must be an ISO-8601 datetime")
    try:
        dt = parse_iso_datetime(value)
    except ValueError:
        raise InvalidRequest(f"{field} must be an ISO-8601 datetime")
    if dt is None:
        raise InvalidRequest(f"{field} must be an ISO-8601 datetime")
    return dt


def require_mapping(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidRequest("Invalid JSON payload")
    return payload
