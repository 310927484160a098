"""Tests for driving test methods across scheduler ticks."""

import asyncio

import pytest

from tickunit.case import RunState, TestCase
from tickunit.failures import ConfigurationError, TestTimeoutError, TickunitError


class Door:
    """Opens a few ticks after being asked to."""

    def __init__(self, delay):
        self.delay = delay
        self.is_open = False

    async def open(self):
        for _ in range(self.delay):
            await asyncio.sleep(0)
        self.is_open = True


class SchedulingCase(TestCase):
    def set_up(self):
        self.door = Door(delay=3)
        self.log = []

    async def test_waits_for_state_to_settle(self):
        self.spawn(self.door.open())
        self.is_false(self.door.is_open, "closed right away")
        await self.tick(5)
        self.is_true(self.door.is_open, "open after settling")

    async def test_order_across_suspensions(self):
        self.fail("first")
        await self.tick()

        async def child():
            await self.tick()
            self.fail("third")

        self.spawn(child())
        self.fail("second")

    async def test_nested_spawns_are_joined(self):
        async def grandchild():
            await self.tick(2)
            self.log.append("grandchild")

        async def child():
            await self.tick()
            self.spawn(grandchild())
            self.log.append("child")

        self.spawn(child())

    async def test_spawned_failure_is_recorded(self):
        async def check_later():
            await self.tick()
            self.equal("open", "closed")

        self.spawn(check_later())

    async def test_spawned_crash_is_fatal(self):
        async def crash():
            await self.tick()
            raise LookupError("sub-unit failed")

        self.spawn(crash())

    async def test_crash_while_body_waits(self):
        self.ready = False

        async def make_ready():
            await self.tick()
            raise LookupError("never got ready")

        self.spawn(make_ready())
        while not self.ready:
            await self.tick()

    async def test_stops_own_poller(self):
        async def poll():
            while True:
                self.log.append("poll")
                await self.tick()

        poller = self.spawn(poll())
        await self.tick(3)
        poller.cancel()
        await self.tick()
        self.is_true(poller.cancelled())

    async def test_handles_awaited_crash(self):
        async def crash():
            await self.tick()
            raise LookupError("door missing")

        try:
            await self.spawn(crash())
        except LookupError as e:
            self.log.append(str(e))

    async def test_awaited_crash_not_handled(self):
        async def crash():
            await self.tick()
            raise LookupError("door missing")

        await self.spawn(crash())

    async def test_awaits_spawned_result(self):
        async def measure():
            await self.tick(2)
            return 42

        self.equal(42, await self.spawn(measure()))

    async def test_awaits_cancelled_work(self):
        work = self.spawn(asyncio.sleep(60))
        work.cancel()
        await work

    async def test_raises_own_timeout(self):
        await self.tick()
        raise asyncio.TimeoutError("upstream service timed out")

    async def test_expectation_shared_with_spawned(self):
        async def expected_to_fail():
            await self.tick()
            self.fail("door jammed")

        self.expect_failure("jammed")
        self.spawn(expected_to_fail())

    async def test_async_generator(self):
        self.log.append("start")
        yield
        self.log.append("after first tick")
        yield
        self.is_true(False, "after second tick")

    def test_generator(self):
        self.log.append("start")
        yield None
        yield self.door.open()
        self.is_true(self.door.is_open)
        yield self._sub_steps()
        self.log.append("done")

    def _sub_steps(self):
        self.log.append("sub 1")
        yield
        self.log.append("sub 2")

    async def test_hangs(self):
        self.spawn(asyncio.sleep(60))
        await asyncio.sleep(60)

    async def test_spawn_plain_value(self):
        self.spawn(42)

    def test_noop(self):
        pass


def _run(name, **kwargs):
    return SchedulingCase(name).run_sync(**kwargs)


def test_body_waits_across_ticks():
    result = _run("test_waits_for_state_to_settle")
    assert result.passed is True


def test_failures_keep_order_across_suspensions():
    result = _run("test_order_across_suspensions")
    assert [f.message for f in result.failures] == ["first", "second", "third"]


def test_run_waits_for_nested_units_of_work():
    case = SchedulingCase("test_nested_spawns_are_joined")
    result = case.run_sync()
    assert result.passed is True
    assert case.log == ["child", "grandchild"]


def test_failure_in_spawned_unit_is_recorded():
    result = _run("test_spawned_failure_is_recorded")
    assert len(result.failures) == 1
    location = result.failures[0].location
    assert location is not None
    assert location.function == "check_later"


def test_fault_in_spawned_unit_is_fatal():
    with pytest.raises(LookupError, match="sub-unit failed"):
        _run("test_spawned_crash_is_fatal")


def test_fault_in_spawned_unit_stops_waiting_body():
    with pytest.raises(LookupError, match="never got ready"):
        _run("test_crash_while_body_waits")


def test_fault_in_spawned_unit_wins_over_timeout(mocker):
    case = SchedulingCase("test_crash_while_body_waits")
    tear_down = mocker.spy(case, "tear_down")
    with pytest.raises(LookupError, match="never got ready"):
        case.run_sync(timeout=1)
    tear_down.assert_called_once()
    assert case.get_test_result() is None


def test_cancelling_own_spawned_unit_is_not_a_fault():
    case = SchedulingCase("test_stops_own_poller")
    result = case.run_sync()
    assert result.passed is True
    assert "poll" in case.log


def test_awaited_fault_can_be_handled_by_body():
    case = SchedulingCase("test_handles_awaited_crash")
    result = case.run_sync()
    assert result.passed is True
    assert case.log == ["door missing"]


def test_awaited_fault_not_handled_is_fatal():
    with pytest.raises(LookupError, match="door missing"):
        _run("test_awaited_crash_not_handled")


def test_awaiting_spawned_work_returns_its_result():
    result = _run("test_awaits_spawned_result")
    assert result.passed is True


def test_awaiting_cancelled_work_is_fatal():
    with pytest.raises(TickunitError, match="was cancelled before it completed"):
        _run("test_awaits_cancelled_work")


def test_own_timeout_error_is_not_relabelled():
    with pytest.raises(asyncio.TimeoutError, match="upstream service") as excinfo:
        _run("test_raises_own_timeout", timeout=5)
    assert not isinstance(excinfo.value, TestTimeoutError)


def test_expected_failure_visible_to_spawned_units():
    result = _run("test_expectation_shared_with_spawned")
    assert result.passed is True


def test_async_generator_yields_are_ticks():
    case = SchedulingCase("test_async_generator")
    result = case.run_sync()
    assert case.log == ["start", "after first tick"]
    assert [f.message for f in result.failures] == ["after second tick: expected true, got False"]


def test_generator_yields_nested_units_of_work():
    case = SchedulingCase("test_generator")
    result = case.run_sync()
    assert result.passed is True
    assert case.log == ["start", "sub 1", "sub 2", "done"]


def test_timeout_raises_and_tears_down(mocker):
    case = SchedulingCase("test_hangs")
    tear_down = mocker.spy(case, "tear_down")
    with pytest.raises(TestTimeoutError, match="SchedulingCase.test_hangs"):
        case.run_sync(timeout=0.05)
    tear_down.assert_called_once()
    assert case.state is RunState.COMPLETED
    assert case.get_test_result() is None


def test_timeout_not_hit_by_fast_method():
    result = _run("test_waits_for_state_to_settle", timeout=5)
    assert result.passed is True


def test_spawn_rejects_non_awaitables():
    with pytest.raises(TypeError, match="42"):
        _run("test_spawn_plain_value")


def test_spawn_outside_run_is_rejected():
    case = SchedulingCase("test_noop")

    async def sleeper():
        await asyncio.sleep(0)

    coro = sleeper()
    try:
        with pytest.raises(ConfigurationError, match="while a test method is executing"):
            case.spawn(coro)
    finally:
        coro.close()


def test_async_hooks_are_awaited():
    class AsyncHooks(TestCase):
        async def set_up(self):
            await asyncio.sleep(0)
            self.ready = True

        async def tear_down(self):
            await asyncio.sleep(0)
            self.cleaned = True

        def test_ready(self):
            self.is_true(self.ready)

    case = AsyncHooks("test_ready")
    result = case.run_sync()
    assert result.passed is True
    assert case.cleaned is True

