"""Concurrent worker fan-out with failure isolation, and the result merge."""

from __future__ import annotations

import asyncio
import copy
import time
from abc import ABC, abstractmethod
from typing import Callable

from stepwise.config import WorkerConfig
from stepwise.utils.logging import get_logger
from stepwise.workers.models import (
    ContentChunk,
    ContextItem,
    MergedContext,
    SearchPlan,
    SearchQuery,
    WorkerPlan,
    WorkerResult,
)

log = get_logger(__name__)


class WorkerAgent(ABC):
    """Runs one worker's share of a context-gathering task."""

    @abstractmethod
    async def execute(
        self, worker_id: str, task: str, queries: list[SearchQuery]
    ) -> WorkerResult: ...


AgentFactory = Callable[[], WorkerAgent]


class WorkerPool:
    """Fans a search plan out to workers, one fresh agent per worker."""

    def __init__(self, agent_factory: AgentFactory, config: WorkerConfig | None = None) -> None:
        self._agent_factory = agent_factory
        self._config = config or WorkerConfig()

    async def execute(self, plan: SearchPlan, task: str) -> list[WorkerResult]:
        """Run every worker concurrently and return the results that succeeded.

        ``plan.execution_plan`` only sets launch order; workers it does not
        mention are launched after it. A worker that raises or times out
        contributes nothing and does not affect its siblings. Each worker
        gets its own agent from the factory and a private copy of its queries.
        """
        ordered = self._launch_order(plan)
        if not ordered:
            return []

        limit = self._config.max_concurrency
        semaphore = asyncio.Semaphore(limit) if limit > 0 else None

        log.info("workers_starting", count=len(ordered), max_concurrency=limit or None)
        outcomes = await asyncio.gather(
            *(self._run_one(w, task, semaphore) for w in ordered),
            return_exceptions=True,
        )

        results: list[WorkerResult] = []
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                log.warning("worker_join_error", error=str(outcome))
                continue
            _worker_id, result = outcome
            if result is not None:
                results.append(result)

        log.info("workers_finished", succeeded=len(results), total=len(ordered))
        return results

    def _launch_order(self, plan: SearchPlan) -> list[WorkerPlan]:
        by_id = {w.worker_id: w for w in plan.workers}
        ordered: list[WorkerPlan] = []
        for worker_id in plan.execution_plan:
            worker = by_id.pop(worker_id, None)
            if worker is None:
                log.warning("worker_not_in_plan", worker_id=worker_id)
                continue
            ordered.append(worker)
        ordered.extend(w for w in plan.workers if w.worker_id in by_id)
        return ordered

    async def _run_one(
        self,
        worker: WorkerPlan,
        task: str,
        semaphore: asyncio.Semaphore | None,
    ) -> tuple[str, WorkerResult | None]:
        queries = copy.deepcopy(worker.queries)
        start = time.monotonic()
        try:
            agent = self._agent_factory()
            if semaphore is None:
                result = await self._call(agent, worker.worker_id, task, queries)
            else:
                async with semaphore:
                    result = await self._call(agent, worker.worker_id, task, queries)
        except Exception as e:
            log.warning(
                "worker_failed",
                worker_id=worker.worker_id,
                elapsed=round(time.monotonic() - start, 3),
                error=str(e) or type(e).__name__,
            )
            return worker.worker_id, None

        log.info(
            "worker_completed",
            worker_id=worker.worker_id,
            elapsed=round(time.monotonic() - start, 3),
            chunks=len(result.chunks),
            confidence=result.confidence,
        )
        return worker.worker_id, result

    async def _call(
        self, agent: WorkerAgent, worker_id: str, task: str, queries: list[SearchQuery]
    ) -> WorkerResult:
        coro = agent.execute(worker_id, task, queries)
        if self._config.timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=self._config.timeout)


def categorize(kind: str) -> str:
    """Map a chunk kind to the merged-context bucket it belongs in."""
    kind = kind.lower()
    if "component" in kind or "function" in kind:
        return "components"
    if "type" in kind or "interface" in kind:
        return "types"
    if "schema" in kind or "model" in kind:
        return "schemas"
    return "helpers"


def aggregate_results(
    results: list[WorkerResult], base: MergedContext | None = None
) -> MergedContext:
    """Merge worker chunks into buckets, first-seen-wins per chunk id.

    Results are visited by descending confidence then worker id, so the
    merged set is the same whatever order the workers finished in.
    Items already in ``base`` count as seen.
    """
    merged = copy.deepcopy(base) if base is not None else MergedContext()
    buckets = merged.buckets()
    seen: dict[str, set[str]] = {
        name: {item.name for item in items} for name, items in buckets.items()
    }

    for result in sorted(results, key=lambda r: (-r.confidence, r.worker_id)):
        for chunk in result.chunks:
            bucket = categorize(chunk.kind)
            if chunk.id in seen[bucket]:
                continue
            seen[bucket].add(chunk.id)
            buckets[bucket].append(_to_item(chunk, result))

    return merged


def _to_item(chunk: ContentChunk, result: WorkerResult) -> ContextItem:
    return ContextItem(
        name=chunk.id,
        kind=chunk.kind,
        content=chunk.content,
        file_path=chunk.file_path,
        relevance_score=result.confidence,
        worker_id=result.worker_id,
        chunk_score=chunk.score,
    )
