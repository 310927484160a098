from __future__ import annotations

from pathlib import Path
from typing import Sequence, TYPE_CHECKING

from junitparser import Error, Failure, JUnitXml, TestCase, TestSuite

if TYPE_CHECKING:
    from tickunit.runner import CaseOutcome


def write_junit(run_dir: Path, outcomes: Sequence[CaseOutcome]) -> Path:  # type: ignore[name-defined]
    """Write junit.xml with one suite per test case class, return path."""
    xml = JUnitXml()

    suites: dict[str, TestSuite] = {}
    durations: dict[str, float] = {}
    for outcome in outcomes:
        suite = suites.get(outcome.target)
        if suite is None:
            suite = TestSuite(outcome.target)
            suites[outcome.target] = suite
            durations[outcome.target] = 0.0

        case = TestCase(outcome.method, classname=outcome.target, time=round(outcome.duration_seconds, 4))
        if outcome.status == "error":
            error = Error(outcome.error or "", type_="error")
            if outcome.details:
                error.text = outcome.details
            case.result = [error]
        elif outcome.failures:
            results = []
            for record in outcome.failures:
                failure = Failure(record.message, type_="assertion")
                failure.text = record.description
                results.append(failure)
            case.result = results
        suite.add_testcase(case)
        durations[outcome.target] += outcome.duration_seconds

    for target, suite in suites.items():
        # Set time after add_testcase (add_testcase resets it via update_statistics)
        suite.time = round(durations[target], 4)
        xml.append(suite)

    junit_path = run_dir / "junit.xml"
    xml.write(str(junit_path), pretty=True)
    return junit_path
