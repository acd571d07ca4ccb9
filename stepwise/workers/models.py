"""Worker plan and result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SearchQuery:
    query: str
    kind: str = ""
    target_paths: list[str] = field(default_factory=list)


@dataclass
class WorkerPlan:
    worker_id: str
    queries: list[SearchQuery] = field(default_factory=list)


@dataclass
class SearchPlan:
    global_intent: str = ""
    workers: list[WorkerPlan] = field(default_factory=list)
    execution_plan: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchPlan:
        return cls(
            global_intent=str(data.get("global_intent", "")),
            workers=[
                WorkerPlan(
                    worker_id=str(w["worker_id"]),
                    queries=[
                        SearchQuery(
                            query=str(q.get("query", "")),
                            kind=str(q.get("kind", "")),
                            target_paths=[str(p) for p in q.get("target_paths") or []],
                        )
                        for q in w.get("queries") or []
                    ],
                )
                for w in data.get("workers") or []
            ],
            execution_plan=[str(w) for w in data.get("execution_plan") or []],
        )


@dataclass
class ContentChunk:
    id: str
    kind: str
    content: str
    file_path: str = ""
    score: float | None = None  # vector similarity, when the chunk came from a vector search


@dataclass
class WorkerResult:
    worker_id: str
    chunks: list[ContentChunk] = field(default_factory=list)
    confidence: float = 0.0
    summary: str = ""


@dataclass
class ContextItem:
    name: str
    kind: str
    content: str
    file_path: str
    relevance_score: float
    worker_id: str = ""
    chunk_score: float | None = None


@dataclass
class MergedContext:
    components: list[ContextItem] = field(default_factory=list)
    types: list[ContextItem] = field(default_factory=list)
    schemas: list[ContextItem] = field(default_factory=list)
    helpers: list[ContextItem] = field(default_factory=list)

    def buckets(self) -> dict[str, list[ContextItem]]:
        return {
            "components": self.components,
            "types": self.types,
            "schemas": self.schemas,
            "helpers": self.helpers,
        }

    def __len__(self) -> int:
        return sum(len(items) for items in self.buckets().values())

    def ranked(self, limit: int | None = None) -> list[ContextItem]:
        """All items, highest relevance first; vector score breaks ties."""
        items = [item for bucket in self.buckets().values() for item in bucket]
        items.sort(
            key=lambda i: (
                -i.relevance_score,
                -(i.chunk_score if i.chunk_score is not None else 0.0),
                i.name,
            )
        )
        return items if limit is None else items[:limit]
