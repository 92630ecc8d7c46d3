from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import List
from ..stats.models import ContextSummary


class _Response(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TotalsOut(_Response):
    events: int
    choices: int
    sessions: int


class StatsTotalsOut(TotalsOut):
    contexts: int


class HealthResponse(_Response):
    ok: bool = True
    updated_at: str
    now: str


class StatsResponse(_Response):
    ok: bool = True
    generated_at: str
    totals: StatsTotalsOut
    context: ContextSummary | None = None
    top_contexts: List[ContextSummary]


class TraceAcceptedResponse(_Response):
    ok: bool = True
    accepted: int
    totals: TotalsOut
