"""Prompt construction for the decision loop and the planner."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stepwise.core.agent import VerifiedInfo


_DECISION_PROMPT = """\
You are an Autonomous Context Engine. Your goal is to build a perfect context for the user's task.

Task: "{task}"

Available Tools:
{tools}

Current Context:
{gathered}

History of Actions:
{history}

Decide the next step.
- Use "search" to find relevant symbols.
- Use "list_dir" to explore the file structure.
- Use "view_file" to read file contents.
- Use "run_command" only if necessary (e.g. grep).
- Choose "done" when you have gathered sufficient information.

Respond with JSON ONLY:
{{
  "action": "use_tool",
  "tool": "tool_name",
  "args": {{ ... }},
  "reason": "why this is needed"
}}
OR
{{
  "action": "done"
}}
"""

_PLANNING_PROMPT = """\
Create a detailed execution plan for this goal:

Goal: {goal}

Context:
{context}

Available tools: {tools}

Create a plan with:
1. Clear, sequential steps
2. Tool to use for each step
3. Expected output for each step
4. Dependencies between steps (which steps must complete first)
5. Fallback steps if primary step fails
6. Estimated timeout for each step
7. Number of retries allowed

Respond with JSON:
{{
  "goal": {goal_json},
  "steps": [
    {{
      "id": "step_1",
      "description": "Clear description of what this step does",
      "tool": "tool_name",
      "arguments": {{"key": "value"}},
      "expected_output": "What we expect to get from this step",
      "dependencies": [],
      "fallback_steps": [
        {{
          "id": "step_1_fallback",
          "description": "Alternative approach if step_1 fails",
          "tool": "...",
          "arguments": {{}},
          "expected_output": "...",
          "dependencies": [],
          "fallback_steps": [],
          "timeout": 30,
          "retries": 1
        }}
      ],
      "timeout": 60,
      "retries": 2
    }}
  ],
  "estimated_duration": 300
}}

Guidelines:
- Keep steps atomic and focused
- Add dependencies to ensure correct order
- Provide meaningful fallbacks
- Set realistic timeouts
- Limit retries to avoid infinite loops

Respond ONLY with valid JSON."""


def format_gathered_info(info: list[VerifiedInfo]) -> str:
    """One line per item: the first line of its content plus where it came from."""
    if not info:
        return "No information gathered yet."
    lines = []
    for i, item in enumerate(info):
        first_line = item.content.splitlines()[0] if item.content else ""
        lines.append(f"#{i}: {first_line} (Source: {item.source})")
    return "\n".join(lines)


def build_decision_prompt(
    task: str,
    tool_catalog: list[dict[str, Any]],
    gathered_info: list[VerifiedInfo],
    history: list[str],
) -> str:
    return _DECISION_PROMPT.format(
        task=task,
        tools=json.dumps(tool_catalog, indent=2),
        gathered=format_gathered_info(gathered_info),
        history="\n".join(history) or "None yet.",
    )


def build_planning_prompt(goal: str, context: str, tool_names: list[str]) -> str:
    return _PLANNING_PROMPT.format(
        goal=goal,
        goal_json=json.dumps(goal),
        context=context or "No additional context.",
        tools=", ".join(tool_names) or "none",
    )
