"""Execution health monitoring: stuck steps, failure rates, loops, timeouts, retries."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from stepwise.config import MonitorConfig
from stepwise.utils.logging import get_logger

log = get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class ExecutionRecord:
    step_id: str
    started_at: float
    completed_at: float | None = None
    success: bool = False
    error: str | None = None
    retry_count: int = 0
    timeout: float | None = None  # declared budget for this step, if known

    @property
    def is_open(self) -> bool:
        return self.completed_at is None

    @property
    def duration(self) -> float | None:
        if self.completed_at is None:
            return None
        return self.completed_at - self.started_at


@dataclass
class HealthMetrics:
    total_steps: int = 0
    successful_steps: int = 0
    failed_steps: int = 0
    average_step_duration: float = 0.0
    stuck_count: int = 0
    loop_count: int = 0


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HealthIssue(ABC):
    kind: str = field(init=False, default="")

    @abstractmethod
    def headline(self) -> str:
        """One-line description used in warnings and suggestions."""


@dataclass(frozen=True)
class StuckState(HealthIssue):
    step_id: str
    duration: float
    kind: str = field(init=False, default="stuck_state")

    def headline(self) -> str:
        return f"Step '{self.step_id}' stuck for {self.duration:.0f}s"


@dataclass(frozen=True)
class HighFailureRate(HealthIssue):
    rate: float
    kind: str = field(init=False, default="high_failure_rate")

    def headline(self) -> str:
        return f"High failure rate ({self.rate * 100:.1f}%)"


@dataclass(frozen=True)
class InfiniteLoop(HealthIssue):
    pattern: str
    kind: str = field(init=False, default="infinite_loop")

    def headline(self) -> str:
        return f"Infinite loop detected: {self.pattern}"


@dataclass(frozen=True)
class Timeout(HealthIssue):
    step_id: str
    expected: float
    actual: float
    kind: str = field(init=False, default="timeout")

    def headline(self) -> str:
        return (
            f"Step '{self.step_id}' timed out "
            f"(expected: {self.expected:.0f}s, actual: {self.actual:.0f}s)"
        )


@dataclass(frozen=True)
class ExcessiveRetries(HealthIssue):
    step_id: str
    retry_count: int
    kind: str = field(init=False, default="excessive_retries")

    def headline(self) -> str:
        return f"Step '{self.step_id}' retried {self.retry_count} times"


_REMEDIES: dict[type[HealthIssue], tuple[str, ...]] = {
    StuckState: (
        "Timeout and retry with different approach",
        "Skip to fallback step",
        "Abort and replan with more context",
    ),
    HighFailureRate: (
        "Revise execution plan",
        "Gather more context before proceeding",
        "Use different tools or approaches",
        "Break down complex steps into smaller ones",
    ),
    InfiniteLoop: (
        "Break loop with new approach",
        "Add loop counter and exit condition",
        "Abort and replan with different strategy",
    ),
    Timeout: (
        "Increase timeout for this step",
        "Split into smaller, faster steps",
        "Use fallback approach",
        "Optimize the operation",
    ),
    ExcessiveRetries: (
        "This approach may not work, try fallback",
        "Gather more information before retrying",
        "Adjust parameters or approach",
        "Skip this step if not critical",
    ),
}


class LoopDetector:
    """Sliding window of recently started step ids."""

    def __init__(self, max_history: int = 20) -> None:
        self._recent: deque[str] = deque(maxlen=max_history)

    def add_step(self, step_id: str) -> None:
        self._recent.append(step_id)

    @property
    def recent(self) -> list[str]:
        return list(self._recent)

    def detect_loop(self) -> InfiniteLoop | None:
        recent = self._recent
        n = len(recent)

        if n >= 3 and recent[-1] == recent[-2] == recent[-3]:
            return InfiniteLoop(pattern=f"Repeated step: {recent[-1]}")

        if n >= 6:
            first = [recent[i] for i in range(n - 6, n - 3)]
            second = [recent[i] for i in range(n - 3, n)]
            if first == second:
                return InfiniteLoop(pattern=f"Repeated pattern: [{', '.join(first)}]")

        return None


class HealthMonitor:
    """Tracks step executions and reports advisory health issues.

    Single-writer: one monitor instance must not be mutated from several
    concurrent tasks without outside synchronisation.
    """

    def __init__(self, config: MonitorConfig | None = None, clock: Clock = time.monotonic) -> None:
        self._config = config or MonitorConfig()
        self._clock = clock
        self._history: list[ExecutionRecord] = []
        self._metrics = HealthMetrics()
        self._loops = LoopDetector(self._config.loop_window)

    @property
    def metrics(self) -> HealthMetrics:
        return self._metrics

    @property
    def history(self) -> list[ExecutionRecord]:
        return list(self._history)

    def record_step_start(self, step_id: str, timeout: float | None = None) -> None:
        self._history.append(
            ExecutionRecord(step_id=step_id, started_at=self._clock(), timeout=timeout)
        )
        self._loops.add_step(step_id)
        self._metrics.total_steps += 1

    def record_step_complete(self, step_id: str, success: bool, error: str | None = None) -> None:
        record = self._latest(step_id, open_only=True)
        if record is None:
            log.debug("step_complete_without_start", step_id=step_id)
            return

        record.completed_at = self._clock()
        record.success = success
        record.error = error

        if success:
            self._metrics.successful_steps += 1
        else:
            self._metrics.failed_steps += 1

        self._update_average_duration(record.completed_at - record.started_at)

    def record_retry(self, step_id: str) -> None:
        record = self._latest(step_id)
        if record is not None:
            record.retry_count += 1

    def check_health(self) -> list[HealthIssue]:
        issues: list[HealthIssue] = []

        stuck = self._check_stuck_state()
        if stuck:
            issues.append(stuck)
            self._metrics.stuck_count += 1

        failure = self._check_failure_rate()
        if failure:
            issues.append(failure)

        loop = self._loops.detect_loop()
        if loop:
            issues.append(loop)
            self._metrics.loop_count += 1

        issues.extend(self._check_timeouts())
        issues.extend(self._check_excessive_retries())
        return issues

    def suggest_corrections(self, issues: list[HealthIssue]) -> list[str]:
        suggestions: list[str] = []
        for issue in issues:
            remedies = _REMEDIES[type(issue)]
            lines = [f"{issue.headline()}. Suggestions:"]
            lines.extend(f"{i}. {text}" for i, text in enumerate(remedies, start=1))
            suggestions.append("\n".join(lines))
        return suggestions

    def cleanup_history(self, keep_recent: int | None = None) -> None:
        """Drop the oldest records beyond ``keep_recent`` (config default)."""
        keep = self._config.keep_recent if keep_recent is None else keep_recent
        excess = len(self._history) - keep
        if excess > 0:
            del self._history[:excess]

    # --- Detectors ---

    def _check_stuck_state(self) -> StuckState | None:
        if not self._history:
            return None
        last = self._history[-1]
        if last.is_open:
            elapsed = self._clock() - last.started_at
            if elapsed > self._config.stuck_threshold:
                return StuckState(step_id=last.step_id, duration=elapsed)
        return None

    def _check_failure_rate(self) -> HighFailureRate | None:
        total = self._metrics.total_steps
        if total > self._config.failure_rate_min_steps:
            rate = self._metrics.failed_steps / total
            if rate > self._config.failure_rate_threshold:
                return HighFailureRate(rate=rate)
        return None

    def _check_timeouts(self) -> list[Timeout]:
        issues: list[Timeout] = []
        for record in self._history:
            duration = record.duration
            if duration is None:
                continue
            limit = record.timeout if record.timeout is not None else self._config.timeout_threshold
            if duration > limit:
                issues.append(Timeout(step_id=record.step_id, expected=limit, actual=duration))
        return issues

    def _check_excessive_retries(self) -> list[ExcessiveRetries]:
        return [
            ExcessiveRetries(step_id=r.step_id, retry_count=r.retry_count)
            for r in self._history
            if r.retry_count > self._config.max_retries
        ]

    # --- Internals ---

    def _latest(self, step_id: str, open_only: bool = False) -> ExecutionRecord | None:
        for record in reversed(self._history):
            if record.step_id == step_id and (record.is_open or not open_only):
                return record
        return None

    def _update_average_duration(self, new_duration: float) -> None:
        n = self._metrics.successful_steps + self._metrics.failed_steps
        if n <= 1:
            self._metrics.average_step_duration = new_duration
        else:
            old = self._metrics.average_step_duration
            self._metrics.average_step_duration = (old * (n - 1) + new_duration) / n
