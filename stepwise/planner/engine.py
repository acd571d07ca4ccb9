"""Plan creation and dependency-ordered execution."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field

from stepwise.core.llm import LLMMessage, LLMProvider
from stepwise.core.monitor import HealthIssue, HealthMonitor
from stepwise.core.prompts import build_planning_prompt
from stepwise.planner.models import Plan, PlanStep
from stepwise.planner.validation import ready_steps, validate_plan
from stepwise.tools.base import ToolRegistry, ToolResult
from stepwise.utils.logging import get_logger
from stepwise.utils.text import extract_json_object, strip_code_fences

log = get_logger(__name__)


@dataclass
class PlanRun:
    """Outcome of executing a plan."""

    completed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    blocked: list[str] = field(default_factory=list)
    outputs: dict[str, str] = field(default_factory=dict)
    issues: list[HealthIssue] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed and not self.blocked


class PlanEngine:
    def __init__(
        self,
        llm: LLMProvider,
        registry: ToolRegistry,
        monitor: HealthMonitor | None = None,
    ) -> None:
        self._llm = llm
        self._registry = registry
        self._monitor = monitor or HealthMonitor()

    @property
    def monitor(self) -> HealthMonitor:
        return self._monitor

    async def create_plan(self, goal: str, context: str = "") -> Plan:
        """Ask the LLM for a plan and check it structurally.

        Raises CircularDependencyError if the returned steps form a cycle.
        """
        prompt = build_planning_prompt(goal, context, self._registry.names())
        response = await self._llm.complete(
            messages=[LLMMessage(role="user", content=prompt)],
            temperature=0.3,
        )

        plan = self._parse_plan(response.content, goal)
        plan.created_at = time.time()
        validate_plan(plan)
        log.info("plan_created", goal=goal, steps=len(plan.steps))
        return plan

    def _parse_plan(self, content: str, goal: str) -> Plan:
        try:
            data = json.loads(extract_json_object(strip_code_fences(content)))
            if not isinstance(data, dict):
                raise ValueError("plan is not a JSON object")
            return Plan.from_dict(data, goal=goal)
        except (json.JSONDecodeError, ValueError, KeyError, TypeError):
            log.warning("plan_parse_failed", content=content[:200])
            return Plan(goal=goal)

    async def execute_plan(self, plan: Plan) -> PlanRun:
        """Run steps as their dependencies complete.

        A failing step is retried up to its ``retries`` budget, then its
        fallback steps are tried in order. Dependents of a step that still
        fails are never started and are reported as blocked.
        """
        validate_plan(plan)
        run = PlanRun()
        done: set[str] = set()

        while True:
            frontier = [s for s in ready_steps(plan, done) if s.id not in run.failed]
            if not frontier:
                break
            for step in frontier:
                result = await self._run_with_fallbacks(step)
                if result.success:
                    done.add(step.id)
                    run.completed.append(step.id)
                    run.outputs[step.id] = result.output
                else:
                    run.failed[step.id] = result.error

                issues = self._monitor.check_health()
                if issues:
                    for suggestion in self._monitor.suggest_corrections(issues):
                        log.warning("health_issue", step_id=step.id, suggestion=suggestion)

        run.blocked = [s.id for s in plan.steps if s.id not in done and s.id not in run.failed]
        run.issues = self._monitor.check_health()
        log.info(
            "plan_executed",
            goal=plan.goal,
            completed=len(run.completed),
            failed=len(run.failed),
            blocked=len(run.blocked),
        )
        return run

    async def _run_with_fallbacks(self, step: PlanStep) -> ToolResult:
        result = await self._run_step(step)
        if result.success:
            return result

        for fallback in step.fallback_steps:
            log.info("fallback_started", step_id=step.id, fallback_id=fallback.id)
            fb_result = await self._run_with_fallbacks(fallback)
            if fb_result.success:
                return fb_result
            result = fb_result
        return result

    async def _run_step(self, step: PlanStep) -> ToolResult:
        self._monitor.record_step_start(step.id, timeout=step.timeout_seconds)

        tool = self._registry.get(step.tool)
        if tool is None:
            error = f"Unknown tool: {step.tool}"
            log.warning("step_unknown_tool", step_id=step.id, tool=step.tool)
            self._monitor.record_step_complete(step.id, False, error)
            return ToolResult(success=False, error=error)

        attempt = 0
        while True:
            log.info("step_executing", step_id=step.id, tool=step.tool, attempt=attempt)
            try:
                result = await tool.execute(**step.arguments)
            except Exception as e:
                log.exception("step_raised", step_id=step.id)
                result = ToolResult(success=False, error=str(e) or type(e).__name__)

            if result.success or attempt >= step.retries:
                break
            attempt += 1
            self._monitor.record_retry(step.id)

        if not result.success and not result.error:
            result.error = "Step failed"
        self._monitor.record_step_complete(
            step.id, result.success, None if result.success else result.error,
        )
        return result
