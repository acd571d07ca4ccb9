"""Codebase symbol search tool and its backends."""

from __future__ import annotations

import asyncio
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from stepwise.tools.base import BaseTool, ToolResult
from stepwise.utils.logging import get_logger

log = get_logger(__name__)

MAX_RESULTS = 5

_DEFINITION = re.compile(
    r"^\s*(?:export\s+)?(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?"
    r"(def|class|function|fn|struct|interface|type|enum|trait)\s+([A-Za-z_][A-Za-z0-9_]*)"
)
_KINDS = {
    "def": "function",
    "function": "function",
    "fn": "function",
    "class": "class",
    "struct": "type",
    "interface": "interface",
    "type": "type",
    "enum": "type",
    "trait": "interface",
}
_SOURCE_SUFFIXES = {".py", ".rs", ".ts", ".tsx", ".js", ".jsx", ".go"}
_SKIP_DIRS = {".git", ".venv", "venv", "node_modules", "__pycache__", "target", "dist", "build"}
_SNIPPET_LINES = 8


@dataclass
class SearchHit:
    name: str
    kind: str
    file_path: str
    content: str
    score: float = 0.0


class SearchBackend(ABC):
    """Symbol / vector search over an indexed codebase, supplied by the host."""

    @abstractmethod
    async def search(self, query: str, limit: int = MAX_RESULTS) -> list[SearchHit]: ...


class SymbolScanBackend(SearchBackend):
    """Finds definitions whose names contain the query terms by scanning source files.

    A name equal to one of the terms scores 1.0; partial matches score by the
    share of terms found in the name.
    """

    def __init__(self, root: Path, max_file_bytes: int = 200_000) -> None:
        self._root = root
        self._max_file_bytes = max_file_bytes

    async def search(self, query: str, limit: int = MAX_RESULTS) -> list[SearchHit]:
        terms = [t.lower() for t in re.findall(r"\w+", query)]
        if not terms:
            return []
        return await asyncio.to_thread(self._scan, terms, limit)

    def _scan(self, terms: list[str], limit: int) -> list[SearchHit]:
        hits: list[SearchHit] = []
        for path in self._sources():
            try:
                lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
            except OSError:
                continue
            for lineno, line in enumerate(lines):
                match = _DEFINITION.match(line)
                if not match:
                    continue
                name = match.group(2)
                lowered = name.lower()
                found = sum(1 for t in terms if t in lowered)
                if not found:
                    continue
                score = 1.0 if lowered in terms else 0.9 * found / len(terms)
                hits.append(SearchHit(
                    name=name,
                    kind=_KINDS[match.group(1)],
                    file_path=path.relative_to(self._root).as_posix(),
                    content="\n".join(lines[lineno:lineno + _SNIPPET_LINES]),
                    score=score,
                ))
        hits.sort(key=lambda h: (-h.score, h.file_path, h.name))
        return hits[:limit]

    def _sources(self) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(self._root):
            dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if path.suffix not in _SOURCE_SUFFIXES:
                    continue
                try:
                    if path.stat().st_size > self._max_file_bytes:
                        continue
                except OSError:
                    continue
                yield path


class SearchTool(BaseTool):
    def __init__(self, backends: list[SearchBackend]) -> None:
        self._backends = backends

    @property
    def name(self) -> str:
        return "search"

    @property
    def description(self) -> str:
        return "Search for symbols in the codebase using graph and vector search"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"query": {"type": "string", "description": "Search query"}},
            "required": ["query"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        query = kwargs.get("query")
        if not query:
            return ToolResult(success=False, error="Missing 'query' argument")

        hits: list[SearchHit] = []
        for backend in self._backends:
            try:
                hits.extend(await backend.search(query, MAX_RESULTS))
            except Exception:
                # One broken index should not hide results from the others
                log.exception("search_backend_failed", backend=type(backend).__name__)

        seen: set[tuple[str, str]] = set()
        unique: list[SearchHit] = []
        for hit in sorted(hits, key=lambda h: (-h.score, h.file_path, h.name)):
            key = (hit.name, hit.file_path)
            if key in seen:
                continue
            seen.add(key)
            unique.append(hit)

        if not unique:
            return ToolResult(success=True, output="No results found.")

        output = "\n---\n".join(
            f"Symbol: {h.name} ({h.kind})\nFile: {h.file_path}\nContent:\n{h.content}"
            for h in unique[:MAX_RESULTS]
        )
        return ToolResult(success=True, output=output, data={"hits": len(unique)})
