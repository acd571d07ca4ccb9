"""Tests for the autonomous decision loop."""

import json
import pytest
from unittest.mock import AsyncMock

from stepwise.config import AgentConfig
from stepwise.core.agent import AutonomousAgent, Finish, UseTool, parse_action
from stepwise.core.events import EventSink
from stepwise.core.llm import LLMResponse
from stepwise.core.monitor import HealthMonitor
from stepwise.errors import DecisionParseError
from stepwise.tools.base import BaseTool, ToolRegistry, ToolResult


def _use(tool: str, args: dict | None = None, reason: str = "need it") -> LLMResponse:
    return LLMResponse(content=json.dumps({
        "action": "use_tool", "tool": tool, "args": args or {}, "reason": reason,
    }))


DONE = LLMResponse(content='{"action": "done"}')


class FakeTool(BaseTool):
    def __init__(self, name: str, result: ToolResult | None = None, raises: Exception | None = None):
        self._name = name
        self._result = result or ToolResult(success=True, output=f"{name} output")
        self._raises = raises
        self.calls: list[dict] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"Fake {self._name}"

    @property
    def parameters(self) -> dict:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs) -> ToolResult:
        self.calls.append(kwargs)
        if self._raises:
            raise self._raises
        return self._result


@pytest.fixture
def mock_llm():
    llm = AsyncMock()
    llm.complete = AsyncMock()
    return llm


class TestParseAction:
    def test_use_tool(self):
        action = parse_action('{"action": "use_tool", "tool": "search", "args": {"query": "x"}, "reason": "r"}')
        assert isinstance(action, UseTool)
        assert action.args == {"query": "x"}

    def test_done(self):
        assert isinstance(parse_action('{"action": "done"}'), Finish)

    def test_fenced(self):
        assert isinstance(parse_action('```json\n{"action": "done"}\n```'), Finish)

    def test_unknown_action_rejected(self):
        with pytest.raises(DecisionParseError):
            parse_action('{"action": "think_harder"}')

    def test_garbage_rejected(self):
        with pytest.raises(DecisionParseError) as exc:
            parse_action("let me think about it")
        assert exc.value.raw == "let me think about it"

    def test_use_tool_needs_tool_name(self):
        with pytest.raises(DecisionParseError):
            parse_action('{"action": "use_tool"}')


class TestAgentLoop:
    async def test_immediate_done(self, mock_llm):
        mock_llm.complete.return_value = DONE
        agent = AutonomousAgent(mock_llm, ToolRegistry([FakeTool("search")]))

        context = await agent.run("find auth")
        assert context.task == "find auth"
        assert context.gathered_info == []
        assert context.history == []
        assert mock_llm.complete.await_count == 1

    async def test_missing_tool_exhausts_budget(self, mock_llm):
        mock_llm.complete.return_value = _use("nonexistent")
        agent = AutonomousAgent(mock_llm, ToolRegistry())

        context = await agent.run("task")
        errors = [h for h in context.history if h.startswith("Error: Tool")]
        assert len(errors) == 15
        assert errors[0] == "Error: Tool 'nonexistent' not found"
        assert mock_llm.complete.await_count == 15

    async def test_step_budget_from_config(self, mock_llm):
        mock_llm.complete.return_value = _use("nonexistent")
        agent = AutonomousAgent(mock_llm, ToolRegistry(), AgentConfig(max_steps=3))
        await agent.run("task")
        assert mock_llm.complete.await_count == 3

    async def test_successful_tool_is_gathered(self, mock_llm):
        search = FakeTool("search", ToolResult(success=True, output="def login(): ..."))
        mock_llm.complete.side_effect = [_use("search", {"query": "login"}, "find login"), DONE]
        agent = AutonomousAgent(mock_llm, ToolRegistry([search]))

        context = await agent.run("task")
        assert search.calls == [{"query": "login"}]
        assert context.history == [
            "Action: UseTool search (Reason: find login)",
            "Output: def login(): ...",
        ]
        info = context.gathered_info[0]
        assert info.content == "def login(): ..."
        assert info.source == 'Tool: search Args: {"query": "login"}'
        assert info.relevance == "find login"

    async def test_non_gather_tool_only_recorded_in_history(self, mock_llm):
        mock_llm.complete.side_effect = [_use("list_dir", {"path": "."}), DONE]
        agent = AutonomousAgent(mock_llm, ToolRegistry([FakeTool("list_dir")]))

        context = await agent.run("task")
        assert context.gathered_info == []
        assert context.history[-1] == "Output: list_dir output"

    async def test_history_output_is_truncated(self, mock_llm):
        big = "x" * 2000
        mock_llm.complete.side_effect = [_use("view_file", {"path": "a.py"}), DONE]
        agent = AutonomousAgent(mock_llm, ToolRegistry([FakeTool("view_file", ToolResult(success=True, output=big))]))
        sink = EventSink()

        context = await agent.run("task", sink)
        assert context.history[-1] == "Output: " + "x" * 500
        assert context.gathered_info[0].content == big
        outputs = [e for e in sink.pending() if e.type == "ToolOutput"]
        assert len(outputs[0].output) == 1000

    async def test_tool_failure_recorded(self, mock_llm):
        failing = FakeTool("view_file", ToolResult(success=False, error="File not found: a.py"))
        mock_llm.complete.side_effect = [_use("view_file", {"path": "a.py"}), DONE]
        agent = AutonomousAgent(mock_llm, ToolRegistry([failing]))

        context = await agent.run("task")
        assert context.history[-1] == "Error: File not found: a.py"
        assert context.gathered_info == []

    async def test_raising_tool_does_not_abort(self, mock_llm):
        exploding = FakeTool("search", raises=RuntimeError("index offline"))
        mock_llm.complete.side_effect = [_use("search", {"query": "q"}), DONE]
        agent = AutonomousAgent(mock_llm, ToolRegistry([exploding]))

        context = await agent.run("task")
        assert context.history[-1] == "Error: index offline"

    async def test_parse_error_aborts(self, mock_llm):
        mock_llm.complete.return_value = LLMResponse(content="not json at all")
        agent = AutonomousAgent(mock_llm, ToolRegistry())
        with pytest.raises(DecisionParseError):
            await agent.run("task")

    async def test_llm_error_propagates(self, mock_llm):
        mock_llm.complete.side_effect = ConnectionError("provider down")
        agent = AutonomousAgent(mock_llm, ToolRegistry())
        with pytest.raises(ConnectionError):
            await agent.run("task")

    async def test_fenced_decision_accepted(self, mock_llm):
        mock_llm.complete.return_value = LLMResponse(content='```json\n{"action": "done"}\n```')
        context = await AutonomousAgent(mock_llm, ToolRegistry()).run("task")
        assert context.history == []

    async def test_prompt_contains_task_and_history(self, mock_llm):
        mock_llm.complete.side_effect = [_use("missing"), DONE]
        agent = AutonomousAgent(mock_llm, ToolRegistry([FakeTool("search")]))
        await agent.run("wire up OAuth")

        second_prompt = mock_llm.complete.call_args_list[1].kwargs["messages"][0].content
        assert "wire up OAuth" in second_prompt
        assert "Error: Tool 'missing' not found" in second_prompt
        assert "search" in second_prompt


class TestAgentEvents:
    async def test_event_sequence(self, mock_llm):
        mock_llm.complete.side_effect = [_use("search", {"query": "q"}, "look"), DONE]
        agent = AutonomousAgent(mock_llm, ToolRegistry([FakeTool("search")]))
        sink = EventSink()

        await agent.run("task", sink)
        types = [e.type for e in sink.pending()]
        assert types == ["Step", "Thought", "ToolCall", "ToolOutput", "Step", "Done"]

    async def test_error_event_on_failure(self, mock_llm):
        failing = FakeTool("search", ToolResult(success=False, error="bad query"))
        mock_llm.complete.side_effect = [_use("search"), DONE]
        sink = EventSink()

        await AutonomousAgent(mock_llm, ToolRegistry([failing])).run("task", sink)
        errors = [e for e in sink.pending() if e.type == "Error"]
        assert errors[0].error == "bad query"

    async def test_missing_tool_emits_no_error_event(self, mock_llm):
        mock_llm.complete.side_effect = [_use("ghost"), DONE]
        sink = EventSink()

        await AutonomousAgent(mock_llm, ToolRegistry()).run("task", sink)
        assert [e.type for e in sink.pending()] == ["Step", "Thought", "ToolCall", "Step", "Done"]

    async def test_full_sink_does_not_block(self, mock_llm):
        mock_llm.complete.return_value = _use("ghost")
        sink = EventSink(max_queue_size=2)

        context = await AutonomousAgent(mock_llm, ToolRegistry()).run("task", sink)
        assert len(context.history) == 30
        assert sink.dropped > 0
        assert len(sink.pending()) == 2

    async def test_closed_sink_is_tolerated(self, mock_llm):
        mock_llm.complete.side_effect = [_use("ghost"), DONE]
        sink = EventSink()
        sink.close()

        context = await AutonomousAgent(mock_llm, ToolRegistry()).run("task", sink)
        assert context.history[-1] == "Error: Tool 'ghost' not found"


class TestAgentHealth:
    async def test_repeated_action_surfaces_loop_warning_once(self, mock_llm):
        mock_llm.complete.side_effect = [_use("search", {"query": "q"})] * 5 + [DONE]
        monitor = HealthMonitor()
        agent = AutonomousAgent(mock_llm, ToolRegistry([FakeTool("search")]), monitor=monitor)

        context = await agent.run("task")
        warnings = [h for h in context.history if h.startswith("Warning:")]
        assert warnings == ['Warning: Infinite loop detected: Repeated step: search:{"query": "q"}']
        assert monitor.metrics.total_steps == 5
        assert monitor.metrics.successful_steps == 5

    async def test_monitor_records_missing_tool_as_failure(self, mock_llm):
        mock_llm.complete.side_effect = [_use("ghost"), DONE]
        monitor = HealthMonitor()
        await AutonomousAgent(mock_llm, ToolRegistry(), monitor=monitor).run("task")
        assert monitor.metrics.failed_steps == 1
        assert monitor.history[0].error == "tool not found"
