"""Storytrace: telemetry ingestion and aggregation for branching-narrative clients."""

__version__ = "0.1.0"
