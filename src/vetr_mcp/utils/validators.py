"""Validation utilities for tool input."""

import math
from typing import Any

from vetr_mcp.utils.clock import iso_to_epoch_ms
from vetr_mcp.utils.sanitize import sanitize_text


def normalize_entity_key(entity_key: str | None) -> str:
    """
    Normalize an entity key: uppercase, strip whitespace.

    Returns "" for None or blank keys; callers treat that as no data.
    """
    if entity_key is None:
        return ""
    return str(entity_key).strip().upper()


def parse_date_ms(value: Any) -> int:
    """
    Coerce a date to epoch milliseconds.

    Accepts epoch-ms numbers or ISO-8601 strings (naive values are UTC).

    Raises:
        ValueError: If the value is missing or malformed
    """
    message = f"Invalid date '{value}'. Must be epoch milliseconds or ISO-8601"
    if value is None or isinstance(value, bool):
        raise ValueError(message)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError(message)
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
        try:
            return iso_to_epoch_ms(text)
        except ValueError as e:
            raise ValueError(message) from e
    raise ValueError(message)


def require_field(record: dict[str, Any], field: str, kind: str) -> Any:
    """Return record[field] or raise ValueError naming the record kind."""
    if not isinstance(record, dict):
        raise ValueError(f"Invalid {kind}: expected object, got {type(record).__name__}")
    if record.get(field) is None:
        raise ValueError(f"Invalid {kind}: missing required field '{field}'")
    return record[field]


def clean_text(value: Any, max_length: int = 500) -> str:
    """Sanitize an optional free-text value to a (possibly empty) string."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value)
    return sanitize_text(str(value), max_length=max_length) or ""


def parse_non_negative(value: Any, field: str) -> float:
    """
    Coerce a number that must be finite and >= 0.

    Raises:
        ValueError: If the value is not a finite non-negative number
    """
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid {field} '{value}'. Must be a number") from e
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"Invalid {field} '{value}'. Must be >= 0")
    return number


_TRUE_STRINGS = frozenset({"true", "1"})
_FALSE_STRINGS = frozenset({"false", "0"})


def parse_bool(value: Any, field: str) -> bool:
    """
    Coerce an optional flag. None reads as False.

    Accepts bools, 0/1 and "true"/"false"/"1"/"0" in any case.

    Raises:
        ValueError: If the value is anything else
    """
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"Invalid {field} '{value}'. Must be true or false")
