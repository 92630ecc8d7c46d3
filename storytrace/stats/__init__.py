from .models import ContextSummary, StatsSnapshot, Totals
from .store import AggregationStore

__all__ = ["AggregationStore", "ContextSummary", "StatsSnapshot", "Totals"]
