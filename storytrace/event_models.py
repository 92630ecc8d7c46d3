"""Canonical trace event record and the normalizer that builds it."""
from datetime import datetime, timezone
from typing import Any, Dict
import math
import secrets
import time

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .sanitize import clean_key, clean_text

CHOICE = "choice"
ANNOTATION = "annotation"
RAW = "raw"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_INT64_LIMIT = 2**63


def now_iso() -> str:
    """UTC timestamp in ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def new_event_id() -> str:
    """Time-ordered prefix plus a random suffix, e.g. ``lzx1k2a3-4f9c2d1``."""
    return f"{_base36(time.time_ns() // 1_000_000)}-{secrets.token_hex(4)[:7]}"


class TraceEvent(BaseModel):
    """One client interaction, as written to the append log."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_event_id)
    ts: str
    type: str
    seed: str = ""
    lang: str = ""
    world_id: str = ""
    era: str = ""
    day: int | float | None = None
    vector: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    source_ip: str = ""
    user_agent: str = ""
    received_at: str = Field(default_factory=now_iso)


def _parse_day(value: Any) -> int | float | None:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    if not math.isfinite(number):
        return None
    # Integers beyond 64 bits cannot be written to the log; keep those as floats
    if number.is_integer() and abs(number) < _INT64_LIMIT:
        return int(number)
    return number


def normalize_event(payload: Any, *, source_ip: Any = "", user_agent: Any = "") -> TraceEvent:
    """
    Build a :class:`TraceEvent` from an arbitrary parsed payload.

    Never raises: a payload that is not a mapping is treated as an empty one
    and every field falls back to an empty or default value.

    Args:
        payload: Parsed JSON element from the request body
        source_ip: Peer address of the request
        user_agent: Client agent header

    Returns:
        A fully sanitized event
    """
    raw = payload if isinstance(payload, dict) else {}
    data = raw.get("data")
    if not isinstance(data, dict):
        data = {}

    return TraceEvent(
        ts=clean_text(raw.get("ts") or raw.get("timestamp") or now_iso(), 40),
        type=clean_key(raw.get("type") or "unknown", 40),
        seed=clean_key(raw.get("seed") or "", 64),
        lang=clean_key(raw.get("lang") or "", 8),
        world_id=clean_text(raw.get("worldId") or "", 80),
        era=clean_text(raw.get("era") or "", 20),
        day=_parse_day(raw.get("day")),
        vector=clean_key(raw.get("vector") or "", 40),
        data=data,
        source_ip=clean_text(source_ip or "", 80),
        user_agent=clean_text(user_agent or "", 220),
    )
