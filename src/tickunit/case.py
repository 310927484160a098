"""Test case lifecycle: drive one test method across scheduler ticks."""

from __future__ import annotations

import asyncio
import contextlib
import functools
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Iterator

from tickunit import asserts
from tickunit.attribution import StackAttributor
from tickunit.failures import (
    ConfigurationError,
    FailureRecord,
    TestFailure,
    TestTimeoutError,
    TickunitError,
)
from tickunit.result import TestResult

__tickunit = True

TestMethod = Callable[[], Any]


class RunState(str, Enum):
    NOT_STARTED = "not_started"
    SETUP_RUNNING = "setup_running"
    EXECUTING = "executing"
    TEARING_DOWN = "tearing_down"
    COMPLETED = "completed"


_ACTIVE_STATES = (RunState.SETUP_RUNNING, RunState.EXECUTING, RunState.TEARING_DOWN)


def _is_unit_of_work(value: Any) -> bool:
    return inspect.isawaitable(value) or inspect.isgenerator(value) or inspect.isasyncgen(value)


async def _complete(work: Any) -> Any:
    """Run a unit of work to completion.

    Accepts an awaitable, a generator or an async generator. Every value a
    generator yields is one scheduler tick, unless it is itself a unit of work,
    in which case it is completed before the generator resumes.
    """
    if inspect.isasyncgen(work):
        async for step in work:
            await _step(step)
    elif inspect.isgenerator(work):
        for step in work:
            await _step(step)
    elif inspect.isawaitable(work):
        return await work


async def _step(step: Any) -> None:
    if _is_unit_of_work(step):
        await _complete(step)
    else:
        await asyncio.sleep(0)


class SpawnedWork:
    """Handle on a unit of work scheduled with ``TestCase.spawn``.

    Awaiting the handle returns the sub-unit's result or raises its fault in
    the awaiter, which may handle it. A fault nobody awaits ends the run.
    """

    def __init__(self, task: asyncio.Task[Any]) -> None:
        self.task = task
        self.awaited = False

    def __await__(self):
        self.awaited = True
        return self.task.__await__()

    def cancel(self) -> bool:
        return self.task.cancel()

    def cancelled(self) -> bool:
        return self.task.cancelled()

    def done(self) -> bool:
        return self.task.done()

    def result(self) -> Any:
        return self.task.result()


class TestCase:
    """A class holding test methods, one of which is run per ``run`` call.

    Subclass it and define public methods; each may be a plain function, a
    coroutine function or a (async) generator function. Failed assertions made
    through the aliases (``is_true``, ``equal``, ...) are recorded and the
    method carries on. Anything else raised by the method is fatal and leaves
    ``run`` unchanged.

    Example::

        class PlayerTests(TestCase):
            async def test_jump(self):
                self.player.jump()
                await self.tick(3)
                self.is_true(self.player.airborne)
    """

    __test__ = False

    _test_method_names: tuple[str, ...] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        names: dict[str, None] = {}
        for klass in reversed(cls.__mro__):
            if klass is TestCase or not issubclass(klass, TestCase):
                continue
            for name, value in vars(klass).items():
                if name.startswith("_") or hasattr(TestCase, name):
                    continue
                if inspect.isfunction(value):
                    names[name] = None
                else:
                    names.pop(name, None)
        cls._test_method_names = tuple(names)

    def __init__(
        self,
        test_method_name: str | None = None,
        *,
        logger: logging.Logger | None = None,
        attributor: StackAttributor | None = None,
    ) -> None:
        self.test_method_name = test_method_name
        self.logger = logger or logging.getLogger("tickunit")
        self.attributor = attributor or StackAttributor()
        self.failures: list[FailureRecord] = []
        self._registered: dict[str, TestMethod] = {}
        self._spawned: list[asyncio.Task[Any]] = []
        self._body: asyncio.Task[Any] | None = None
        self._fault: BaseException | None = None
        self._result: TestResult | None = None
        self._state = RunState.NOT_STARTED

    # --- hooks ---

    def set_up(self) -> Any:
        """Prepare before the test method runs. May be async."""

    def tear_down(self) -> Any:
        """Clean up after the test method ran. May be async."""

    # --- configuration ---

    def set_test_method(self, name: str) -> None:
        self.test_method_name = name

    def register(self, name: str, method: TestMethod) -> None:
        """Register a callable taking no arguments as test method ``name``."""
        self._registered[name] = method

    @classmethod
    def test_methods(cls) -> tuple[str, ...]:
        return cls._test_method_names

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def result(self) -> TestResult | None:
        return self._result

    def get_test_result(self) -> TestResult | None:
        return self._result

    def _type_name(self) -> str:
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}"

    def _label(self) -> str:
        return f"{type(self).__name__}.{self.test_method_name}"

    def _resolve_method(self) -> TestMethod:
        name = self.test_method_name
        if not name:
            raise ConfigurationError(
                "Invalid test method encountered, be sure to call TestCase.set_test_method()"
            )
        if name in self._registered:
            return self._registered[name]
        if name in self._test_method_names:
            return getattr(self, name)
        raise ConfigurationError(
            f"Test method: {name} does not exist in class: {self._type_name()}"
        )

    # --- running ---

    async def run(self, result: TestResult | None = None, *, timeout: float | None = None) -> TestResult:
        """Run the configured test method and return its result.

        ``timeout`` bounds the test method and everything it spawned; ``None``
        waits for as long as it takes.
        """
        if self._state in _ACTIVE_STATES:
            raise ConfigurationError(f"{self._type_name()} is already running")
        method = self._resolve_method()
        if result is None:
            result = TestResult()
        self._result = None

        self._state = RunState.SETUP_RUNNING
        try:
            await _complete(self.set_up())
            result.test_started()
            self._state = RunState.EXECUTING
            try:
                with asserts.expectation_scope():
                    await self._execute(method, timeout)
                    self._drain(result)
            finally:
                self.failures.clear()
                self._state = RunState.TEARING_DOWN
                await _complete(self.tear_down())
            self._result = result
        finally:
            self._state = RunState.COMPLETED
        return result

    def run_sync(self, result: TestResult | None = None, *, timeout: float | None = None) -> TestResult:
        """Run on a fresh event loop; for callers outside of one."""
        return asyncio.run(self.run(result, timeout=timeout))

    async def _execute(self, method: TestMethod, timeout: float | None) -> None:
        loop = asyncio.get_running_loop()
        self._spawned = []
        self._fault = None
        body = self._body = loop.create_task(self._drive(method))
        deadline = None
        if timeout is not None:
            deadline = loop.call_later(timeout, self._expire, timeout)
        try:
            try:
                await asyncio.shield(body)
            except asyncio.CancelledError:
                if not body.done():
                    # The run itself was cancelled from outside.
                    body.cancel()
                    await asyncio.gather(body, return_exceptions=True)
                    raise
            if self._fault is not None:
                raise self._fault
            if body.cancelled():
                raise TickunitError(f"{self._label()} was cancelled before it completed")
        finally:
            if deadline is not None:
                deadline.cancel()
            self._body = None
            await self._cancel_spawned()

    async def _drive(self, method: TestMethod) -> None:
        await _complete(method())
        # Sub-units may spawn further sub-units while being joined. Their
        # faults are reported through _spawned_done, not through the join.
        joined = 0
        while joined < len(self._spawned):
            batch = self._spawned[joined:]
            joined = len(self._spawned)
            await asyncio.gather(*batch, return_exceptions=True)

    def _abort(self, fault: BaseException) -> None:
        """Stop the running test method; ``fault`` is raised out of ``run``."""
        if self._fault is None:
            self._fault = fault
        if self._body is not None:
            self._body.cancel()

    def _expire(self, timeout: float) -> None:
        self._abort(TestTimeoutError(f"{self._label()} did not complete within {timeout}s"))

    def _spawned_done(self, work: SpawnedWork, task: asyncio.Task[Any]) -> None:
        # An awaited sub-unit hands its fault to the awaiter instead.
        if task.cancelled() or work.awaited:
            return
        fault = task.exception()
        if fault is not None:
            self._abort(fault)

    async def _cancel_spawned(self) -> None:
        spawned, self._spawned = self._spawned, []
        for task in spawned:
            if not task.done():
                task.cancel()
        if spawned:
            await asyncio.gather(*spawned, return_exceptions=True)

    def _drain(self, result: TestResult) -> None:
        if self.failures:
            for record in self.failures:
                result.test_failed(record)
            self.failures.clear()
            self.logger.warning(f"{self._label()} failed")
        else:
            self.logger.info(f"{self._label()} runs ok")

    # --- scheduling helpers ---

    def spawn(self, work: Any) -> SpawnedWork:
        """Schedule a nested unit of work; ``run`` waits for it to finish.

        A fault raised by the sub-unit stops the test method at once, unless
        the returned handle is being awaited.
        """
        if self._state is not RunState.EXECUTING:
            raise ConfigurationError("spawn() can only be called while a test method is executing")
        if not _is_unit_of_work(work):
            raise TypeError(f"Cannot schedule {work!r}: expected an awaitable or a generator")
        task = asyncio.ensure_future(_complete(work))
        handle = SpawnedWork(task)
        task.add_done_callback(functools.partial(self._spawned_done, handle))
        self._spawned.append(task)
        return handle

    async def tick(self, count: int = 1) -> None:
        """Suspend for ``count`` scheduler ticks."""
        for _ in range(count):
            await asyncio.sleep(0)

    # --- failure recording ---

    def mark_as_failure(self, failure: TestFailure) -> FailureRecord:
        location = self.attributor.attribute(failure.frames)
        record = FailureRecord.build(
            failure.message,
            owner=self._type_name(),
            method=self.test_method_name,
            location=location,
        )
        self.failures.append(record)
        return record

    @contextlib.contextmanager
    def capture(self) -> Iterator[None]:
        """Record assertion failures raised in the block instead of propagating them."""
        try:
            yield
        except TestFailure as failure:
            if asserts.consume_expected(failure):
                self.logger.debug(f"{self._label()}: expected failure absorbed: {failure.message}")
            else:
                self.mark_as_failure(failure)

    def expect_failure(self, match: str | None = None) -> None:
        asserts.expect_failure(match)

    # --- assertion aliases ---

    def fail(self, msg: str | None = None) -> None:
        with self.capture():
            asserts.fail(msg)

    def is_true(self, value: bool, msg: str | None = None) -> None:
        with self.capture():
            asserts.is_true(value, msg)

    def is_false(self, value: bool, msg: str | None = None) -> None:
        with self.capture():
            asserts.is_false(value, msg)

    def is_none(self, value: Any, msg: str | None = None) -> None:
        with self.capture():
            asserts.is_none(value, msg)

    def is_not_none(self, value: Any, msg: str | None = None) -> None:
        with self.capture():
            asserts.is_not_none(value, msg)

    def equal(self, wanted: Any, got: Any, msg: str | None = None) -> None:
        with self.capture():
            asserts.equal(wanted, got, msg)

    def not_equal(self, unwanted: Any, got: Any, msg: str | None = None) -> None:
        with self.capture():
            asserts.not_equal(unwanted, got, msg)
