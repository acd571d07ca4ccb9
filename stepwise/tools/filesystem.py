"""File read/write and directory listing tools."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from stepwise.tools.base import BaseTool, ToolResult
from stepwise.utils.logging import get_logger
from stepwise.utils.platform import normalize_path

log = get_logger(__name__)


def _path_schema(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


class _FileTool(BaseTool):
    """Shared path handling; relative paths resolve against ``root``."""

    def __init__(self, root: Path | None = None) -> None:
        self._root = root

    def _resolve(self, kwargs: dict[str, Any]) -> Path | None:
        raw = kwargs.get("path")
        if not raw:
            return None
        return normalize_path(raw, self._root)


class ViewFileTool(_FileTool):
    @property
    def name(self) -> str:
        return "view_file"

    @property
    def description(self) -> str:
        return "Read the contents of a file"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"path": _path_schema("Path to the file")},
            "required": ["path"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        path = self._resolve(kwargs)
        if path is None:
            return ToolResult(success=False, error="Missing 'path' argument")
        if not path.is_file():
            return ToolResult(success=False, error=f"File not found: {kwargs['path']}")
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            return ToolResult(success=False, error=f"Failed to read file {kwargs['path']}: {e}")
        return ToolResult(success=True, output=content)


class ListDirTool(_FileTool):
    @property
    def name(self) -> str:
        return "list_dir"

    @property
    def description(self) -> str:
        return "List contents of a directory"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"path": _path_schema("Path to the directory")},
            "required": ["path"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        path = self._resolve(kwargs)
        if path is None:
            return ToolResult(success=False, error="Missing 'path' argument")
        if not path.is_dir():
            return ToolResult(success=False, error=f"Directory not found: {kwargs['path']}")

        lines = []
        for entry in sorted(path.iterdir(), key=lambda p: p.name):
            kind = "DIR" if entry.is_dir() else "FILE"
            lines.append(f"[{kind}] {entry.name}")
        return ToolResult(success=True, output="\n".join(lines))


class WriteFileTool(_FileTool):
    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return "Write content to a file (overwrites)"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": _path_schema("Path to the file"),
                "content": {"type": "string", "description": "Content to write"},
            },
            "required": ["path", "content"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        path = self._resolve(kwargs)
        if path is None:
            return ToolResult(success=False, error="Missing 'path' argument")
        content = kwargs.get("content")
        if content is None:
            return ToolResult(success=False, error="Missing 'content' argument")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_text, str(content), encoding="utf-8")
        except OSError as e:
            return ToolResult(success=False, error=f"Failed to write file {kwargs['path']}: {e}")

        log.info("file_written", path=str(path), chars=len(str(content)))
        return ToolResult(success=True, output=f"Successfully wrote to {kwargs['path']}")
