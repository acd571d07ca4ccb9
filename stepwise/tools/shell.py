"""Shell command execution tool."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Any

from stepwise.config import ToolsConfig
from stepwise.tools.base import BaseTool, ToolResult
from stepwise.utils.logging import get_logger
from stepwise.utils.platform import get_default_shell, get_platform

log = get_logger(__name__)

# Patterns that are always blocked
_BLOCKED_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\brm\s+-rf\s+/(\s|$)", re.IGNORECASE),
    re.compile(r"\bmkfs\b", re.IGNORECASE),
    re.compile(r"\bdd\s+.*of=/dev/", re.IGNORECASE),
    re.compile(r">\s*/dev/sd[a-z]", re.IGNORECASE),
    re.compile(r"\bformat\s+[a-zA-Z]:", re.IGNORECASE),
    re.compile(r":\(\)\s*\{\s*:\|:&\s*\};:"),  # fork bomb
]

_MAX_TIMEOUT = 300


class RunCommandTool(BaseTool):
    def __init__(self, config: ToolsConfig | None = None, root: Path | None = None) -> None:
        self._config = config or ToolsConfig()
        self._root = root

    @property
    def name(self) -> str:
        return "run_command"

    @property
    def description(self) -> str:
        return (
            "Execute a shell command (e.g. grep, find) in the project. "
            "Returns stdout, stderr, and exit code."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute.",
                },
                "cwd": {
                    "type": "string",
                    "description": "Working directory for the command.",
                },
                "timeout": {
                    "type": "integer",
                    "description": f"Timeout in seconds (default {self._config.command_timeout}, max {_MAX_TIMEOUT}).",
                },
            },
            "required": ["command"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        command = kwargs.get("command")
        if not command:
            return ToolResult(success=False, error="Missing 'command' argument")
        timeout = min(int(kwargs.get("timeout") or self._config.command_timeout), _MAX_TIMEOUT)
        cwd = kwargs.get("cwd") or (str(self._root) if self._root else None)

        # Check blocklist
        for pattern in _BLOCKED_PATTERNS:
            if pattern.search(command):
                log.warning("blocked_command", command=command)
                return ToolResult(
                    success=False,
                    error=f"Command blocked by safety filter: {command}",
                )

        log.info("command_exec", command=command, cwd=cwd, timeout=timeout)

        shell = get_default_shell()
        if get_platform() == "windows":
            args = ["powershell", "-NoProfile", "-Command", command]
        else:
            args = [shell, "-c", command]

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
            try:
                stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                return ToolResult(success=False, error=f"Command timed out after {timeout}s")
        except FileNotFoundError as e:
            return ToolResult(success=False, error=f"Cannot run command: {e}")

        stdout_str = self._clip(stdout.decode("utf-8", errors="replace").strip())
        stderr_str = self._clip(stderr.decode("utf-8", errors="replace").strip())

        if proc.returncode == 0:
            return ToolResult(success=True, output=stdout_str, data={"exit_code": 0})

        # A failing command is still a result the agent can reason about
        output = (
            f"Command failed with code {proc.returncode}\n"
            f"STDOUT:\n{stdout_str}\nSTDERR:\n{stderr_str}"
        )
        return ToolResult(success=True, output=output, data={"exit_code": proc.returncode})

    def _clip(self, text: str) -> str:
        max_len = self._config.max_output_chars
        if len(text) > max_len:
            return text[:max_len] + f"\n... (truncated, {len(text)} total chars)"
        return text
