"""Call-site attribution for assertion failures.

A failing assertion is raised several calls deep: inside the predicate, inside
the alias on the test case, inside the failure constructor itself. The line a
developer wants is the one in *their* test method, so the captured stack is
scanned outward for the first frame that does not belong to tickunit.

Framework modules tag themselves with the module global ``__tickunit = True``.
Frames can additionally be ignored by module name or by a fragment of their
file path.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import Iterable, Sequence

__tickunit = True

INTERNAL_MARKER = "__tickunit"

DEFAULT_IGNORED_FRAGMENTS: tuple[str, ...] = (
    "/tickunit/attribution.py",
    "/tickunit/failures.py",
    "/tickunit/asserts.py",
    "/tickunit/case.py",
)


@dataclass(frozen=True)
class SourceLocation:
    """File and line a failure is attributed to."""

    file: str
    line: int
    function: str | None = None

    @property
    def basename(self) -> str:
        return os.path.basename(self.file)

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class StackFrame:
    """Snapshot of one interpreter frame.

    Attributes:
        filename: Source file of the frame, ``None`` when it cannot be resolved.
        lineno: Line being executed when the stack was captured.
        function: Name of the executing function.
        module: ``__name__`` of the frame's globals, if any.
        internal: True when the frame's module carries the tickunit marker.
    """

    filename: str | None
    lineno: int
    function: str = "<unknown>"
    module: str | None = None
    internal: bool = False

    def location(self) -> SourceLocation:
        return SourceLocation(file=self.filename or "", line=self.lineno, function=self.function)


def capture_stack(skip: int = 0, limit: int | None = None) -> tuple[StackFrame, ...]:
    """Capture the current call stack, innermost frame first.

    ``skip`` drops that many frames above the caller of ``capture_stack``.
    """
    frames: list[StackFrame] = []
    frame = sys._getframe(1 + skip)
    while frame is not None and (limit is None or len(frames) < limit):
        code = frame.f_code
        f_globals = frame.f_globals
        frames.append(
            StackFrame(
                filename=code.co_filename or None,
                lineno=frame.f_lineno,
                function=code.co_name,
                module=f_globals.get("__name__"),
                internal=bool(f_globals.get(INTERNAL_MARKER, False)),
            )
        )
        frame = frame.f_back
    return tuple(frames)


def _normalize(path: str) -> str:
    return path.replace(os.sep, "/") if os.sep != "/" else path


def find_call_site(
    frames: Sequence[StackFrame],
    ignored_fragments: Iterable[str] = DEFAULT_IGNORED_FRAGMENTS,
    ignored_modules: Iterable[str] = (),
) -> StackFrame | None:
    """Return the first frame, innermost outward, outside the framework.

    Frames without a file name are skipped without ending the scan. Returns
    ``None`` if every frame is ignored.
    """
    fragments = tuple(ignored_fragments)
    modules = tuple(ignored_modules)
    for frame in frames:
        if not frame.filename:
            continue
        if frame.internal:
            continue
        if frame.module and any(
            frame.module == name or frame.module.startswith(name + ".") for name in modules
        ):
            continue
        filename = _normalize(frame.filename)
        if any(fragment in filename for fragment in fragments):
            continue
        return frame
    return None


class StackAttributor:
    """Resolve captured stacks to the user call site."""

    def __init__(
        self,
        ignored_fragments: Iterable[str] = DEFAULT_IGNORED_FRAGMENTS,
        ignored_modules: Iterable[str] = (),
    ) -> None:
        self.ignored_fragments = tuple(ignored_fragments)
        self.ignored_modules = tuple(ignored_modules)

    def find(self, frames: Sequence[StackFrame]) -> StackFrame | None:
        return find_call_site(frames, self.ignored_fragments, self.ignored_modules)

    def attribute(self, frames: Sequence[StackFrame]) -> SourceLocation | None:
        frame = self.find(frames)
        if frame is None:
            return None
        return frame.location()
