"""Exception hierarchy."""

from __future__ import annotations


class StepwiseError(Exception):
    """Base class for every error raised by stepwise."""


class CircularDependencyError(StepwiseError):
    """A plan's dependency graph contains a cycle. Always fatal to execution."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Circular dependency detected in plan: {' -> '.join(cycle)}")


class DecisionParseError(StepwiseError):
    """The decision model returned something that is not a valid action."""

    def __init__(self, message: str, raw: str) -> None:
        self.raw = raw
        super().__init__(f"{message}: {raw[:200]!r}")
