"""Unit testing for code whose tests have to wait across scheduler ticks."""

from tickunit.attribution import SourceLocation, StackAttributor, StackFrame
from tickunit.case import RunState, SpawnedWork, TestCase
from tickunit.failures import (
    ConfigurationError,
    FailureRecord,
    TestFailure,
    TestTimeoutError,
    TickunitError,
)
from tickunit.result import RunStatus, TestResult

__all__ = [
    "ConfigurationError",
    "FailureRecord",
    "RunState",
    "RunStatus",
    "SourceLocation",
    "StackAttributor",
    "SpawnedWork",
    "StackFrame",
    "TestCase",
    "TestFailure",
    "TestResult",
    "TestTimeoutError",
    "TickunitError",
]
