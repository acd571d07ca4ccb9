"""stepwise tools."""

from stepwise.tools.base import BaseTool, ToolRegistry, ToolResult
from stepwise.tools.filesystem import ListDirTool, ViewFileTool, WriteFileTool
from stepwise.tools.search import SearchBackend, SearchHit, SearchTool, SymbolScanBackend
from stepwise.tools.shell import RunCommandTool

__all__ = [
    "BaseTool",
    "ToolRegistry",
    "ToolResult",
    "ListDirTool",
    "ViewFileTool",
    "WriteFileTool",
    "SearchBackend",
    "SearchHit",
    "SearchTool",
    "SymbolScanBackend",
    "RunCommandTool",
]
