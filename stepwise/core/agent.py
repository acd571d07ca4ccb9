"""Autonomous step loop: decide, run a tool, record, repeat."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from stepwise.config import AgentConfig
from stepwise.core.events import (
    AgentEvent,
    DoneEvent,
    ErrorEvent,
    EventSink,
    StepEvent,
    ThoughtEvent,
    ToolCallEvent,
    ToolOutputEvent,
)
from stepwise.core.llm import LLMMessage, LLMProvider
from stepwise.core.monitor import HealthIssue, HealthMonitor
from stepwise.core.prompts import build_decision_prompt
from stepwise.errors import DecisionParseError
from stepwise.tools.base import ToolRegistry, ToolResult
from stepwise.utils.logging import get_logger
from stepwise.utils.text import strip_code_fences, truncate

log = get_logger(__name__)


@dataclass
class VerifiedInfo:
    content: str
    source: str
    relevance: str


@dataclass
class AgentContext:
    task: str
    gathered_info: list[VerifiedInfo] = field(default_factory=list)
    history: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------

class UseTool(BaseModel):
    action: Literal["use_tool"]
    tool: str
    args: dict[str, Any] = Field(default_factory=dict)
    reason: str = ""


class Finish(BaseModel):
    action: Literal["done"]


AgentAction = Annotated[Union[UseTool, Finish], Field(discriminator="action")]

_ACTION_ADAPTER: TypeAdapter[UseTool | Finish] = TypeAdapter(AgentAction)


def parse_action(content: str) -> UseTool | Finish:
    """Decode a decision response, rejecting anything but the two known actions."""
    try:
        return _ACTION_ADAPTER.validate_json(strip_code_fences(content))
    except ValidationError as e:
        raise DecisionParseError("Failed to parse agent decision", content) from e


def _issue_key(issue: HealthIssue) -> tuple[str, str]:
    subject = getattr(issue, "step_id", None) or getattr(issue, "pattern", "")
    return issue.kind, subject


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------

class AutonomousAgent:
    """Iteratively gathers context for a task using tools chosen by an LLM."""

    def __init__(
        self,
        llm: LLMProvider,
        registry: ToolRegistry,
        config: AgentConfig | None = None,
        monitor: HealthMonitor | None = None,
    ) -> None:
        self._llm = llm
        self._registry = registry
        self._config = config or AgentConfig()
        self._monitor = monitor

    async def run(self, task: str, events: EventSink | None = None) -> AgentContext:
        """Run the loop until the model says done or the step budget runs out.

        Tool problems are recorded in ``history`` and never raise. A failing
        or unparsable decision call aborts the run.
        """
        context = AgentContext(task=task)
        max_steps = self._config.max_steps
        reported: set[tuple[str, str]] = set()

        log.info("agent_started", task=task, max_steps=max_steps, tools=self._registry.names())

        for step in range(max_steps):
            log.info("agent_step", step=step + 1, max_steps=max_steps)
            self._emit(events, StepEvent(step=step + 1, max_steps=max_steps))

            action = await self.decide_next_step(context)

            if isinstance(action, Finish):
                log.info("agent_done", step=step + 1, gathered=len(context.gathered_info))
                self._emit(events, DoneEvent())
                break

            await self._use_tool(context, action, events)
            self._surface_health(context, reported)
        else:
            log.info("agent_step_budget_exhausted", max_steps=max_steps)

        return context

    async def decide_next_step(self, context: AgentContext) -> UseTool | Finish:
        prompt = build_decision_prompt(
            context.task,
            self._registry.list_tools(),
            context.gathered_info,
            context.history,
        )
        response = await self._llm.complete(messages=[LLMMessage(role="user", content=prompt)])
        action = parse_action(response.content)
        log.debug("agent_decision", action=action.action)
        return action

    async def _use_tool(
        self, context: AgentContext, action: UseTool, events: EventSink | None
    ) -> None:
        context.history.append(f"Action: UseTool {action.tool} (Reason: {action.reason})")
        self._emit(events, ThoughtEvent(
            content=f"Decided to use tool '{action.tool}' because: {action.reason}",
        ))
        self._emit(events, ToolCallEvent(tool=action.tool, args=action.args))

        args_json = json.dumps(action.args, sort_keys=True, default=str)
        step_key = f"{action.tool}:{args_json}"
        if self._monitor:
            self._monitor.record_step_start(step_key)

        tool = self._registry.get(action.tool)
        if tool is None:
            log.warning("tool_not_found", tool=action.tool)
            context.history.append(f"Error: Tool '{action.tool}' not found")
            if self._monitor:
                self._monitor.record_step_complete(step_key, False, "tool not found")
            return

        log.info("tool_executing", tool=action.tool, args=action.args)
        try:
            result = await tool.execute(**action.args)
        except Exception as e:
            log.exception("tool_raised", tool=action.tool)
            result = ToolResult(success=False, error=str(e) or type(e).__name__)

        if result.success:
            output = result.output
            self._emit(events, ToolOutputEvent(
                output=truncate(output, self._config.tool_output_preview),
            ))
            context.history.append(
                f"Output: {truncate(output, self._config.history_output_chars)}"
            )
            if action.tool in self._config.gather_tools:
                context.gathered_info.append(VerifiedInfo(
                    content=output,
                    source=f"Tool: {action.tool} Args: {args_json}",
                    relevance=action.reason,
                ))
        else:
            error = result.error or "Tool reported failure"
            log.warning("tool_failed", tool=action.tool, error=error)
            self._emit(events, ErrorEvent(error=error))
            context.history.append(f"Error: {error}")

        if self._monitor:
            self._monitor.record_step_complete(
                step_key, result.success, None if result.success else result.error,
            )

    def _surface_health(self, context: AgentContext, reported: set[tuple[str, str]]) -> None:
        if not self._monitor:
            return
        for issue in self._monitor.check_health():
            key = _issue_key(issue)
            if key in reported:
                continue
            reported.add(key)
            log.warning("health_issue", kind=issue.kind, detail=issue.headline())
            context.history.append(f"Warning: {issue.headline()}")

    @staticmethod
    def _emit(events: EventSink | None, event: AgentEvent) -> None:
        if events is not None:
            events.emit(event)
