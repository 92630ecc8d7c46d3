"""Coercion of untrusted input into bounded, normalized strings."""
import re
from typing import Any

_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_WHITESPACE_RE = re.compile(r"\s+")


def _as_text(value: Any) -> str:
    # JSON spelling for booleans and integral floats, as clients send them
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


def clean_text(value: Any, max_len: int = 120) -> str:
    """Return ``value`` as a single-line string of at most ``max_len`` chars.

    ``None`` becomes an empty string, booleans read ``true``/``false`` and
    integral floats drop their ``.0``. Control characters and whitespace
    runs collapse to one space and the result is trimmed before truncation.
    """
    text = _as_text(value)
    text = _WHITESPACE_RE.sub(" ", _CONTROL_RE.sub(" ", text)).strip()
    return text[:max_len]


def clean_key(value: Any, max_len: int = 96) -> str:
    """Like :func:`clean_text`, lower-cased for use as a mapping key."""
    return clean_text(value, max_len).lower()
