"""Structural checks over a plan's dependency graph."""

from __future__ import annotations

from collections.abc import Collection

from stepwise.errors import CircularDependencyError
from stepwise.planner.models import Plan, PlanStep

_UNVISITED = 0
_IN_PROGRESS = 1
_RESOLVED = 2


def validate_plan(plan: Plan) -> None:
    """Raise :class:`CircularDependencyError` if the dependency graph has a cycle.

    Iterative depth-first search with a three-colour marker per step id.
    Only ``dependencies`` edges are followed; fallback steps are alternatives,
    not part of the ordering graph. Dependency ids that name no step in the
    plan are skipped. Stops at the first cycle found.
    """
    edges: dict[str, list[str]] = {s.id: s.dependencies for s in plan.steps}
    colour: dict[str, int] = dict.fromkeys(edges, _UNVISITED)

    for root in edges:
        if colour[root] != _UNVISITED:
            continue

        colour[root] = _IN_PROGRESS
        path = [root]
        stack = [iter(edges[root])]

        while stack:
            dep = next(stack[-1], None)
            if dep is None:
                stack.pop()
                colour[path.pop()] = _RESOLVED
                continue
            if dep not in colour:
                continue
            if colour[dep] == _IN_PROGRESS:
                cycle = path[path.index(dep):] + [dep]
                raise CircularDependencyError(cycle)
            if colour[dep] == _UNVISITED:
                colour[dep] = _IN_PROGRESS
                path.append(dep)
                stack.append(iter(edges[dep]))


def ready_steps(plan: Plan, completed_ids: Collection[str]) -> list[PlanStep]:
    """Steps not yet completed whose dependencies have all completed, in plan order."""
    done = completed_ids if isinstance(completed_ids, (set, frozenset)) else set(completed_ids)
    return [
        step
        for step in plan.steps
        if step.id not in done and all(dep in done for dep in step.dependencies)
    ]
