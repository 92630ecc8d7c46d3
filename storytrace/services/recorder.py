"""Trace recording: normalize, aggregate, then write through to disk."""
from typing import Any, Sequence
import time

import structlog

from ..errors import TraceWriteFailed
from ..event_models import TraceEvent, normalize_event
from ..metrics import Metrics
from ..stats.store import AggregationStore
from ..storage.persistence import SnapshotPersistence

log = structlog.get_logger()


class TraceRecorder:
    """
    Ingestion path shared by the HTTP layer.

    In-memory aggregates are updated before any disk write. A failed write
    surfaces as :class:`TraceWriteFailed` while the counters stay mutated.
    """

    def __init__(
        self,
        store: AggregationStore,
        persistence: SnapshotPersistence,
        metrics: Metrics | None = None,
    ):
        self.store = store
        self.persistence = persistence
        self.metrics = metrics

    async def record(
        self,
        payloads: Sequence[Any],
        *,
        source_ip: str = "",
        user_agent: str = "",
    ) -> list[TraceEvent]:
        """
        Record a batch of raw payloads.

        Args:
            payloads: Parsed body elements, one event each
            source_ip: Peer address of the request
            user_agent: Client agent header

        Returns:
            The normalized events, in order

        Raises:
            TraceWriteFailed: If the log append or snapshot write fails
        """
        start_time = time.time()
        events = [
            normalize_event(item, source_ip=source_ip, user_agent=user_agent)
            for item in payloads
        ]

        # Synchronous: no other request can mutate between these two lines
        self.store.ingest_many(events)
        if self.metrics:
            for event in events:
                self.metrics.record_event_ingested(event.type)
            self.metrics.set_aggregate_sizes(
                contexts=self.store.context_count(),
                sessions=len(self.store.snapshot.sessions),
            )

        try:
            await self.persistence.append_events(events)
            await self.persistence.save_snapshot(self.store.snapshot)
        except TraceWriteFailed:
            if self.metrics:
                self.metrics.record_persist_failure()
            raise

        log.info(
            "trace.accepted",
            accepted=len(events),
            types=sorted({event.type for event in events}),
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return events
