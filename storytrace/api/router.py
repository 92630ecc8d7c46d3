from typing import Any

import orjson
from fastapi import APIRouter, Depends, Request

from ..errors import PayloadTooLarge
from ..event_models import RAW, now_iso
from ..sanitize import clean_text
from ..services.recorder import TraceRecorder
from ..stats.store import AggregationStore
from .schemas import (
    HealthResponse,
    StatsResponse,
    StatsTotalsOut,
    TotalsOut,
    TraceAcceptedResponse,
)

router = APIRouter()

RAW_TEXT_LIMIT = 4000
TOP_CONTEXT_LIMIT = 8


async def get_store(request: Request) -> AggregationStore:
    """Shared store, loaded from disk on first use."""
    store: AggregationStore = request.app.state.store
    await store.ensure_loaded()
    return store


async def get_recorder(request: Request) -> TraceRecorder:
    recorder: TraceRecorder = request.app.state.recorder
    await recorder.store.ensure_loaded()
    return recorder


async def read_body(request: Request, max_size: int) -> str:
    """Read the body, aborting as soon as it exceeds ``max_size`` bytes."""
    chunks = []
    total = 0
    async for chunk in request.stream():
        total += len(chunk)
        if total > max_size:
            raise PayloadTooLarge(max_size, total)
        chunks.append(chunk)
    return b"".join(chunks).decode("utf-8", errors="replace").strip()


def parse_payload(raw: str) -> Any:
    """
    Parse a body; text that is not JSON becomes a single ``raw`` event.

    orjson is stricter than browsers: lone surrogate escapes such as
    ``"\\ud800"`` are rejected, so such bodies are recorded as ``raw``
    rather than counted. The log can only hold valid UTF-8 either way.
    """
    if not raw:
        return {}
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return {"type": RAW, "data": {"raw": clean_text(raw, RAW_TEXT_LIMIT)}}


@router.get("/health", response_model=HealthResponse)
async def health(store: AggregationStore = Depends(get_store)):
    return HealthResponse(updated_at=store.snapshot.updated_at, now=now_iso())


@router.get("/stats", response_model=StatsResponse)
async def stats(context: str | None = None, store: AggregationStore = Depends(get_store)):
    """Current totals, an optional single-context summary and the top contexts."""
    totals = store.totals()
    context_key = clean_text(context or "", 180)
    return StatsResponse(
        generated_at=now_iso(),
        totals=StatsTotalsOut(
            events=totals.events,
            choices=totals.choices,
            sessions=totals.sessions,
            contexts=store.context_count(),
        ),
        context=store.summarize_context(context_key) if context_key else None,
        top_contexts=store.top_contexts(TOP_CONTEXT_LIMIT),
    )


@router.post("/trace", response_model=TraceAcceptedResponse, status_code=202)
async def post_trace(request: Request, recorder: TraceRecorder = Depends(get_recorder)):
    """
    Ingest one event or an array of events.

    Malformed bodies are still recorded: invalid JSON becomes one ``raw``
    event and non-object elements become ``unknown`` events.
    """
    raw_body = await read_body(request, request.app.state.settings.MAX_BODY_SIZE)
    payload = parse_payload(raw_body)
    items = payload if isinstance(payload, list) else [payload]

    events = await recorder.record(
        items,
        source_ip=request.client.host if request.client else "",
        user_agent=request.headers.get("user-agent", ""),
    )
    totals = recorder.store.totals()
    return TraceAcceptedResponse(
        accepted=len(events),
        totals=TotalsOut(events=totals.events, choices=totals.choices, sessions=totals.sessions),
    )
