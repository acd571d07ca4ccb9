"""Dependency-aware task planner."""

from stepwise.planner.models import Plan, PlanStep
from stepwise.planner.validation import ready_steps, validate_plan
from stepwise.planner.engine import PlanEngine, PlanRun

__all__ = ["Plan", "PlanStep", "PlanEngine", "PlanRun", "ready_steps", "validate_plan"]
