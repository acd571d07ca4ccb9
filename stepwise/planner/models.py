"""Planner data models."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

DEFAULT_STEP_TIMEOUT = 60


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be a JSON object, got {type(value).__name__}")
    return value


def _sequence(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{what} must be a JSON array, got {type(value).__name__}")
    return value


@dataclass
class PlanStep:
    id: str
    description: str = ""
    tool: str = ""
    arguments: dict[str, str] = field(default_factory=dict)
    expected_output: str = ""
    dependencies: list[str] = field(default_factory=list)
    fallback_steps: list[PlanStep] = field(default_factory=list)
    timeout_seconds: int = DEFAULT_STEP_TIMEOUT
    retries: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanStep:
        """Build a step from the planner's JSON shape.

        Argument values are coerced to strings and ``fallback_steps`` are
        parsed recursively. Missing fields fall back to defaults; a field of
        the wrong JSON shape raises ValueError.
        """
        data = _mapping(data, "step")
        return cls(
            id=str(data["id"]),
            description=str(data.get("description", "")),
            tool=str(data.get("tool") or ""),
            arguments={
                str(k): v if isinstance(v, str) else str(v)
                for k, v in _mapping(data.get("arguments") or {}, "arguments").items()
            },
            expected_output=str(data.get("expected_output", "")),
            dependencies=[str(d) for d in _sequence(data.get("dependencies"), "dependencies")],
            fallback_steps=[cls.from_dict(f) for f in _sequence(data.get("fallback_steps"), "fallback_steps")],
            timeout_seconds=int(data.get("timeout", DEFAULT_STEP_TIMEOUT)),
            retries=int(data.get("retries", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "tool": self.tool,
            "arguments": dict(self.arguments),
            "expected_output": self.expected_output,
            "dependencies": list(self.dependencies),
            "fallback_steps": [f.to_dict() for f in self.fallback_steps],
            "timeout": self.timeout_seconds,
            "retries": self.retries,
        }


@dataclass
class Plan:
    goal: str
    steps: list[PlanStep] = field(default_factory=list)
    estimated_duration: int = 0  # seconds
    created_at: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, data: dict[str, Any], goal: str | None = None) -> Plan:
        data = _mapping(data, "plan")
        plan = cls(
            goal=str(data.get("goal") or goal or ""),
            steps=[PlanStep.from_dict(s) for s in _sequence(data.get("steps"), "steps")],
            estimated_duration=int(data.get("estimated_duration", 0)),
        )
        if "created_at" in data:
            plan.created_at = float(data["created_at"])
        return plan

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal": self.goal,
            "steps": [s.to_dict() for s in self.steps],
            "estimated_duration": self.estimated_duration,
            "created_at": self.created_at,
        }

    def get_step(self, step_id: str) -> PlanStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None
