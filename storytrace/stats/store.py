"""In-memory aggregation of trace events into context and session counters."""
import asyncio
import math
from typing import Iterable

import structlog

from ..event_models import ANNOTATION, CHOICE, TraceEvent, now_iso
from ..sanitize import clean_key, clean_text
from .models import (
    ChoiceEntry,
    ChoiceSummary,
    ContextAggregate,
    ContextSummary,
    SessionAggregate,
    StatsSnapshot,
    Totals,
)

log = structlog.get_logger()

DEFAULT_CONTEXT = "timeline"
SUMMARY_CHOICE_LIMIT = 8


def _percent(count: int, total: int) -> int:
    # Half-up rounding, so 12.5 -> 13
    if total <= 0:
        return 0
    return int(math.floor(count / total * 100 + 0.5))


class AggregationStore:
    """
    Owner of the in-memory :class:`StatsSnapshot`.

    Mutation happens only through :meth:`ingest`, which never suspends, so
    concurrent requests cannot interleave partial updates. Counts are not
    deduplicated: delivering the same event twice counts it twice.
    """

    def __init__(self, persistence=None, snapshot: StatsSnapshot | None = None):
        """
        Initialize the store.

        Args:
            persistence: Loader used once by :meth:`ensure_loaded`
            snapshot: Initial state (defaults to an empty snapshot)
        """
        self._persistence = persistence
        self.snapshot = snapshot or StatsSnapshot()
        self._loaded = persistence is None
        self._load_lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def ensure_loaded(self) -> None:
        """Load the persisted snapshot exactly once per store."""
        if self._loaded:
            return
        async with self._load_lock:
            if self._loaded:
                return
            self.snapshot = await self._persistence.load()
            self._loaded = True
            log.info(
                "stats.loaded",
                events=self.snapshot.totals.events,
                contexts=len(self.snapshot.contexts),
                sessions=len(self.snapshot.sessions),
            )

    def _ensure_context(self, context_key: str) -> ContextAggregate:
        key = clean_text(context_key or "unknown", 180)
        ctx = self.snapshot.contexts.get(key)
        if ctx is None:
            ctx = self.snapshot.contexts[key] = ContextAggregate()
        return ctx

    def _ensure_session(self, seed: str) -> SessionAggregate | None:
        key = clean_key(seed, 64)
        if not key:
            return None
        session = self.snapshot.sessions.get(key)
        if session is None:
            session = self.snapshot.sessions[key] = SessionAggregate()
            self.snapshot.totals.sessions += 1
        return session

    def ingest(self, event: TraceEvent) -> None:
        """Fold one event into the running aggregates."""
        stamp = now_iso()
        self.snapshot.totals.events += 1
        self.snapshot.updated_at = stamp

        session = self._ensure_session(event.seed)
        if session is not None:
            session.last_seen = stamp
            session.events += 1
            if event.vector:
                session.last_vector = event.vector

        data = event.data
        if event.type == CHOICE:
            self.snapshot.totals.choices += 1
            context = clean_text(data.get("context") or DEFAULT_CONTEXT, 180)
            label = clean_text(data.get("label") or data.get("choice") or "choice", 140)
            key = clean_key(data.get("choice") or label, 120) or "choice"
            ctx = self._ensure_context(context)
            entry = ctx.choices.get(key)
            if entry is None:
                entry = ctx.choices[key] = ChoiceEntry(label=label)
            entry.label = label
            entry.count += 1
            ctx.total += 1
            ctx.updated_at = stamp
            if session is not None:
                session.choices += 1
                session.last_context = context

        elif event.type == ANNOTATION:
            context = clean_text(data.get("context") or DEFAULT_CONTEXT, 180)
            mark = clean_key(data.get("mark") or "mark", 40) or "mark"
            ctx = self._ensure_context(context)
            ctx.marks[mark] = ctx.marks.get(mark, 0) + 1
            ctx.updated_at = stamp
            if session is not None:
                session.last_context = context

    def ingest_many(self, events: Iterable[TraceEvent]) -> int:
        count = 0
        for event in events:
            self.ingest(event)
            count += 1
        return count

    def totals(self) -> Totals:
        return self.snapshot.totals.model_copy()

    def context_count(self) -> int:
        return len(self.snapshot.contexts)

    def summarize_context(self, context_key: str | None) -> ContextSummary | None:
        """
        Summarize one context.

        Args:
            context_key: Context label (sanitized before lookup)

        Returns:
            Summary with the leading choice and up to 8 choices by count,
            or None when the context is unknown
        """
        key = clean_text(context_key or "", 180)
        ctx = self.snapshot.contexts.get(key) if key else None
        if ctx is None:
            return None

        total = ctx.total
        # sorted() is stable, so ties keep first-insertion order
        ranked = sorted(ctx.choices.items(), key=lambda item: -item[1].count)
        choices = [
            ChoiceSummary(
                key=choice_key,
                label=clean_text(entry.label or choice_key, 140),
                count=entry.count,
                percent=_percent(entry.count, total),
            )
            for choice_key, entry in ranked
        ]
        return ContextSummary(
            key=key,
            total=total,
            variants=len(choices),
            top=choices[0] if choices else None,
            choices=choices[:SUMMARY_CHOICE_LIMIT],
        )

    def top_contexts(self, limit: int = 8) -> list[ContextSummary]:
        """Summaries of the ``limit`` contexts with the highest totals."""
        summaries = [self.summarize_context(key) for key in list(self.snapshot.contexts)]
        ranked = sorted((s for s in summaries if s is not None), key=lambda s: -s.total)
        return ranked[:max(limit, 0)]
