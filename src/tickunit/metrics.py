from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from tickunit.runner import CaseOutcome


@dataclass
class MetricStatistics:
    """Statistics for a single metric across test methods."""

    avg: float | None
    min: float | None
    max: float | None
    stddev: float | None

    def to_dict(self) -> dict[str, float | None]:
        return asdict(self)


@dataclass
class RunSummary:
    """Counts and timings for a whole suite run."""

    total: int
    passed: int
    failed: int
    errors: int
    failure_count: int
    pass_rate: float
    duration_seconds: float
    duration_stats: MetricStatistics

    @property
    def all_passed(self) -> bool:
        return self.failed == 0 and self.errors == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "errors": self.errors,
            "failure_count": self.failure_count,
            "pass_rate": self.pass_rate,
            "duration_seconds": self.duration_seconds,
            "duration_stats": self.duration_stats.to_dict(),
        }


def compute_stats(values: list[float | int | None]) -> MetricStatistics:
    """Compute avg, min, max, stddev for a list of numeric values."""
    nums = [v for v in values if v is not None]
    if not nums:
        return MetricStatistics(avg=None, min=None, max=None, stddev=None)

    arr = np.array(nums)
    return MetricStatistics(
        avg=round(float(np.mean(arr)), 4),
        min=round(float(np.min(arr)), 4),
        max=round(float(np.max(arr)), 4),
        stddev=round(float(np.std(arr)), 4),
    )


def summarize(outcomes: Sequence[CaseOutcome]) -> RunSummary:  # type: ignore[name-defined]
    """Aggregate per-method outcomes into a run summary."""
    total = len(outcomes)
    passed = sum(1 for o in outcomes if o.status == "passed")
    failed = sum(1 for o in outcomes if o.status == "failed")
    errors = sum(1 for o in outcomes if o.status == "error")
    durations = [o.duration_seconds for o in outcomes]

    return RunSummary(
        total=total,
        passed=passed,
        failed=failed,
        errors=errors,
        failure_count=sum(len(o.failures) for o in outcomes),
        pass_rate=round(passed / total * 100, 1) if total else 0.0,
        duration_seconds=round(sum(durations), 4),
        duration_stats=compute_stats(durations),
    )
