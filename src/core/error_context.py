"""Sensitive data sanitization for secure error logging.

The error normalizer logs request headers and error context for every
failure. This module redacts credentials from those copies so that
session cookies, bearer tokens and passwords never reach the log sink.
Original data remains unchanged, only logged copies are sanitized.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from functools import lru_cache
from re import Pattern
from typing import Any, Final

from src.core.config import get_settings
from src.core.constants import REDACTED, SENSITIVE_HEADERS
from src.core.exceptions import ConfigurationError

DEFAULT_SENSITIVE_PATTERN: Final[Pattern[str]] = re.compile(
    r"(password|passwd|pwd|secret|token|api[_-]?key|apikey|auth|authorization|"
    r"credential|private[_-]?key|session|cookie|card[_-]?number)",
    re.IGNORECASE,
)

# Maximum depth for nested structure sanitization
MAX_DEPTH: Final[int] = 10


@lru_cache(maxsize=1)
def _get_sensitive_fields() -> tuple[str, ...]:
    """Get the configured sensitive field names, lowercased."""
    try:
        fields = get_settings().log_config.sensitive_fields
    except ConfigurationError:
        return ()
    return tuple(field.lower() for field in fields)


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Args:
        field_name: The field name to check.

    Returns:
        bool: True if the field appears to contain sensitive data.
    """
    if DEFAULT_SENSITIVE_PATTERN.search(field_name):
        return True
    field_lower = field_name.lower()
    return any(sensitive in field_lower for sensitive in _get_sensitive_fields())


def sanitize_value(value: Any, field_name: str = "", depth: int = 0) -> Any:  # noqa: ANN401
    """Sanitize a value, recursing into dicts, lists and tuples.

    Args:
        value: The value to potentially sanitize.
        field_name: The field name for context.
        depth: Current recursion depth.

    Returns:
        Any: Sanitized value or original if not sensitive.
    """
    if depth > MAX_DEPTH:
        return REDACTED
    if field_name and is_sensitive_field(field_name):
        return REDACTED
    if isinstance(value, Mapping):
        return {k: sanitize_value(v, str(k), depth + 1) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return type(value)(sanitize_value(item, "", depth + 1) for item in value)
    return value


def sanitize_dict(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of a mapping with sensitive values redacted."""
    return {key: sanitize_value(value, key) for key, value in data.items()}


def sanitize_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Sanitize HTTP headers.

    Args:
        headers: Header name/value pairs (e.g. ``request.headers.items()``).

    Returns:
        dict[str, str]: Headers with credentials replaced by a marker.
    """
    return {
        name: REDACTED if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers
    }
