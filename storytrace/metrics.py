"""
Prometheus metrics for the trace service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry

from .event_models import ANNOTATION, CHOICE, RAW

_TRACKED_TYPES = {CHOICE, ANNOTATION, RAW}
_KNOWN_PATHS = {"/", "/health", "/health/ready", "/stats", "/trace", "/metrics"}


class Metrics:
    """
    Centralized metrics for the trace service.

    Each instance owns its registry so several apps can coexist in one
    process (as they do under test).
    """

    def __init__(self, service_name: str = "storytrace", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Trace ingestion
        self.events_ingested_total = Counter(
            "storytrace_events_ingested_total",
            "Total trace events ingested",
            ["event_type"],
            registry=self.registry,
        )

        self.persist_failures_total = Counter(
            "storytrace_persist_failures_total",
            "Failed writes to the event log or stats snapshot",
            registry=self.registry,
        )

        self.contexts_known = Gauge(
            "storytrace_contexts",
            "Number of contexts with aggregate counters",
            registry=self.registry,
        )

        self.sessions_known = Gauge(
            "storytrace_sessions",
            "Number of sessions seen",
            registry=self.registry,
        )

    def record_event_ingested(self, event_type: str):
        """Record one ingested event, folding client-defined kinds into 'other'."""
        label = event_type if event_type in _TRACKED_TYPES else "other"
        self.events_ingested_total.labels(event_type=label).inc()

    def record_persist_failure(self):
        self.persist_failures_total.inc()

    def set_aggregate_sizes(self, contexts: int, sessions: int):
        self.contexts_known.set(contexts)
        self.sessions_known.set(sessions)

    def route_label(self, path: str) -> str:
        """Collapse unknown paths so client typos cannot grow label cardinality."""
        return path if path in _KNOWN_PATHS else "unmatched"

