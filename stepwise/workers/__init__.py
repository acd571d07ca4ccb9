"""Parallel worker fan-out and result aggregation."""

from stepwise.workers.models import (
    ContentChunk,
    ContextItem,
    MergedContext,
    SearchPlan,
    SearchQuery,
    WorkerPlan,
    WorkerResult,
)
from stepwise.workers.fanout import (
    AgentFactory,
    WorkerAgent,
    WorkerPool,
    aggregate_results,
    categorize,
)

__all__ = [
    "AgentFactory",
    "ContentChunk",
    "ContextItem",
    "MergedContext",
    "SearchPlan",
    "SearchQuery",
    "WorkerPlan",
    "WorkerResult",
    "WorkerAgent",
    "WorkerPool",
    "aggregate_results",
    "categorize",
]
