"""Aggregate state models.

The snapshot is the full durable state. Field names are snake_case in
Python and camelCase on disk and on the wire.
"""
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..event_models import now_iso

SNAPSHOT_VERSION = 1


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Totals(_CamelModel):
    events: int = 0
    choices: int = 0
    sessions: int = 0


class ChoiceEntry(_CamelModel):
    label: str
    count: int = 0


class ContextAggregate(_CamelModel):
    total: int = 0
    choices: dict[str, ChoiceEntry] = Field(default_factory=dict)
    marks: dict[str, int] = Field(default_factory=dict)
    updated_at: str = Field(default_factory=now_iso)


class SessionAggregate(_CamelModel):
    first_seen: str = Field(default_factory=now_iso)
    last_seen: str = Field(default_factory=now_iso)
    events: int = 0
    choices: int = 0
    last_vector: str = ""
    last_context: str = ""


class StatsSnapshot(_CamelModel):
    """Root persisted object, rewritten in full after each ingestion batch."""

    version: int = SNAPSHOT_VERSION
    created_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso)
    totals: Totals = Field(default_factory=Totals)
    contexts: dict[str, ContextAggregate] = Field(default_factory=dict)
    sessions: dict[str, SessionAggregate] = Field(default_factory=dict)

    @field_validator("totals", "contexts", "sessions", mode="before")
    @classmethod
    def _reset_wrong_shape(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}


class ChoiceSummary(_CamelModel):
    key: str
    label: str
    count: int
    percent: int


class ContextSummary(_CamelModel):
    key: str
    total: int
    variants: int
    top: ChoiceSummary | None = None
    choices: list[ChoiceSummary] = Field(default_factory=list)
