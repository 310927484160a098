"""Assertion predicates and the expected-failure slot.

Predicates return ``None`` when their condition holds and raise
:class:`~tickunit.failures.TestFailure` otherwise. Test cases call them through
their aliases (``self.is_true(...)``) so that a failure is recorded and the test
body keeps going.
"""

from __future__ import annotations

import contextlib
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator

from tickunit.failures import ConfigurationError, TestFailure

__tickunit = True


def _message(default: str, msg: str | None) -> str:
    if msg:
        return f"{msg}: {default}"
    return default


def fail(msg: str | None = None) -> None:
    raise TestFailure(msg or "Assertion failed")


def is_true(value: bool, msg: str | None = None) -> None:
    if not value:
        raise TestFailure(_message(f"expected true, got {value!r}", msg))


def is_false(value: bool, msg: str | None = None) -> None:
    if value:
        raise TestFailure(_message(f"expected false, got {value!r}", msg))


def is_none(value: Any, msg: str | None = None) -> None:
    if value is not None:
        raise TestFailure(_message(f"expected None, got {value!r}", msg))


def is_not_none(value: Any, msg: str | None = None) -> None:
    if value is None:
        raise TestFailure(_message("expected a value, got None", msg))


def equal(wanted: Any, got: Any, msg: str | None = None) -> None:
    if wanted != got:
        raise TestFailure(_message(f"expected {wanted!r}, got {got!r}", msg))


def not_equal(unwanted: Any, got: Any, msg: str | None = None) -> None:
    if unwanted == got:
        raise TestFailure(_message(f"expected anything but {unwanted!r}", msg))


# --- expected failures ---


@dataclass(frozen=True)
class ExpectedFailure:
    """A declared upcoming failure; ``match`` must occur in its message."""

    match: str | None = None

    def matches(self, failure: TestFailure) -> bool:
        return self.match is None or self.match in failure.message


class _ExpectationSlot:
    __slots__ = ("expected",)

    def __init__(self) -> None:
        self.expected: ExpectedFailure | None = None


# Holds a mutable slot so spawned sub-units, which copy the context, share it.
_slot: ContextVar[_ExpectationSlot | None] = ContextVar("tickunit_expected_failure", default=None)


@contextlib.contextmanager
def expectation_scope() -> Iterator[None]:
    """Open a fresh expected-failure slot, cleared on exit whatever happens."""
    slot = _ExpectationSlot()
    token = _slot.set(slot)
    try:
        yield
    finally:
        slot.expected = None
        _slot.reset(token)


def expect_failure(match: str | None = None) -> None:
    """Declare that the next assertion failure is expected."""
    slot = _slot.get()
    if slot is None:
        raise ConfigurationError("expect_failure() can only be called while a test is running")
    slot.expected = ExpectedFailure(match)


def expected_failure() -> ExpectedFailure | None:
    slot = _slot.get()
    return slot.expected if slot is not None else None


def clear_expected() -> None:
    slot = _slot.get()
    if slot is not None:
        slot.expected = None


def consume_expected(failure: TestFailure) -> bool:
    """Absorb ``failure`` if it was declared expected. Returns True if absorbed."""
    slot = _slot.get()
    if slot is None or slot.expected is None or not slot.expected.matches(failure):
        return False
    slot.expected = None
    return True
