from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from tickunit.failures import FailureRecord


class RunStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"


@dataclass
class TestResult:
    """Outcome of one test case run.

    Only ``test_started`` and ``test_failed`` mutate a result; recorded failures
    are never removed.
    """

    __test__ = False

    started_at: datetime | None = None
    failures: list[FailureRecord] = field(default_factory=list)

    def test_started(self) -> None:
        self.started_at = datetime.now(timezone.utc)

    def test_failed(self, record: FailureRecord) -> None:
        self.failures.append(record)

    @property
    def passed(self) -> bool:
        return not self.failures

    @property
    def status(self) -> RunStatus:
        return RunStatus.PASSED if self.passed else RunStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "status": self.status.value,
            "failures": [f.to_dict() for f in self.failures],
        }
