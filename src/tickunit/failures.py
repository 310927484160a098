"""Failure signal, failure records and library errors."""

from __future__ import annotations

from dataclasses import dataclass

from tickunit.attribution import SourceLocation, StackFrame, capture_stack

__tickunit = True


class TickunitError(Exception):
    """Base class for errors raised by tickunit itself."""


class ConfigurationError(TickunitError):
    """A test case cannot be run as configured."""


class TestTimeoutError(TickunitError):
    """A test method did not finish within its deadline."""

    __test__ = False


class TestFailure(Exception):
    """Raised by an assertion predicate that does not hold.

    The stack is captured here, at the raise point, so the failure can later be
    attributed to the line that called the assertion rather than the line that
    caught it.
    """

    __test__ = False

    def __init__(self, message: str = "Assertion failed") -> None:
        super().__init__(message)
        self.message = message
        self.frames: tuple[StackFrame, ...] = capture_stack()


@dataclass(frozen=True)
class FailureRecord:
    """One recorded assertion failure.

    Attributes:
        message: Text of the failed assertion.
        description: Owning type, method and, when known, file and line.
        location: Attributed call site, ``None`` if no user frame was found.
    """

    message: str
    description: str
    location: SourceLocation | None = None

    @classmethod
    def build(
        cls,
        message: str,
        owner: str,
        method: str | None,
        location: SourceLocation | None,
    ) -> "FailureRecord":
        description = f"Failed: {owner}.{method}()"
        if location is not None:
            description += f" in File: {location.basename} on Line: {location.line}"
        return cls(message=message, description=description, location=location)

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "description": self.description,
            "file": self.location.file if self.location else None,
            "line": self.location.line if self.location else None,
        }
