import asyncio

import pytest

from migralert.services.panic_trigger import (
    HAPTIC_CONFIRMED,
    HAPTIC_FAILURE,
    HAPTIC_SUCCESS,
    PanicState,
    PanicTrigger,
)

HOLD = 0.2
TICK = 0.02


class Recorder:
    def __init__(self, contacts=True, fail=False, dispatch_delay=0.0):
        self.contacts = contacts
        self.fail = fail
        self.dispatch_delay = dispatch_delay
        self.dispatches = 0
        self.progress = []
        self.haptics = []
        self.results = []
        self.states = []

    async def dispatch(self):
        self.dispatches += 1
        await asyncio.sleep(self.dispatch_delay)
        if self.fail:
            raise RuntimeError("transport down")
        return "sent"

    def trigger(self) -> PanicTrigger:
        return PanicTrigger(
            dispatch=self.dispatch,
            has_contacts=lambda: self.contacts,
            on_progress=self.progress.append,
            on_haptic=self.haptics.append,
            on_result=lambda ok, outcome: self.results.append((ok, outcome)),
            on_state=self.states.append,
            hold_seconds=HOLD,
            tick_seconds=TICK,
        )


def test_release_before_hold_elapses_never_dispatches():
    recorder = Recorder()

    async def scenario():
        trigger = recorder.trigger()
        assert trigger.press()
        await asyncio.sleep(HOLD / 3)
        assert trigger.release()
        await asyncio.sleep(HOLD * 2)
        return trigger

    trigger = asyncio.run(scenario())
    assert recorder.dispatches == 0
    assert recorder.haptics == []
    assert trigger.state is PanicState.IDLE
    assert recorder.progress[-1] == 0.0


def test_full_hold_dispatches_exactly_once():
    recorder = Recorder()

    async def scenario():
        trigger = recorder.trigger()
        assert trigger.press()
        await asyncio.sleep(HOLD * 1.5)
        await trigger.wait_dispatch()
        return trigger

    trigger = asyncio.run(scenario())
    assert recorder.dispatches == 1
    assert recorder.haptics == [HAPTIC_CONFIRMED, HAPTIC_SUCCESS]
    assert recorder.results == [(True, "sent")]
    assert recorder.states == [PanicState.PRESSING, PanicState.CONFIRMED, PanicState.IDLE]
    assert recorder.progress[-1] == 100.0
    assert not trigger.busy


def test_progress_is_monotonic_while_holding():
    recorder = Recorder()

    async def scenario():
        trigger = recorder.trigger()
        trigger.press()
        await asyncio.sleep(HOLD * 0.8)
        trigger.release()

    asyncio.run(scenario())
    ticks = recorder.progress[:-1]  # last value is the reset to 0
    assert len(ticks) >= 3
    assert ticks == sorted(ticks)
    assert all(0 <= p < 100 for p in ticks)


def test_press_while_dispatch_in_flight_is_ignored():
    recorder = Recorder(dispatch_delay=HOLD * 2)

    async def scenario():
        trigger = recorder.trigger()
        trigger.press()
        await asyncio.sleep(HOLD * 1.2)
        assert trigger.busy
        assert trigger.state is PanicState.IDLE
        assert trigger.press() is False
        await trigger.wait_dispatch()
        assert not trigger.busy
        # Re-armed once the first send settled
        assert trigger.press()
        trigger.release()

    asyncio.run(scenario())
    assert recorder.dispatches == 1


def test_press_without_contacts_is_noop():
    recorder = Recorder(contacts=False)

    async def scenario():
        trigger = recorder.trigger()
        assert trigger.press() is False
        await asyncio.sleep(HOLD * 1.5)
        return trigger

    trigger = asyncio.run(scenario())
    assert trigger.state is PanicState.IDLE
    assert recorder.dispatches == 0


def test_second_press_while_pressing_is_noop():
    recorder = Recorder()

    async def scenario():
        trigger = recorder.trigger()
        assert trigger.press()
        assert trigger.press() is False
        await asyncio.sleep(HOLD * 1.5)
        await trigger.wait_dispatch()

    asyncio.run(scenario())
    assert recorder.dispatches == 1


def test_failed_dispatch_reports_failure_haptic():
    recorder = Recorder(fail=True)

    async def scenario():
        trigger = recorder.trigger()
        trigger.press()
        await asyncio.sleep(HOLD * 1.5)
        await trigger.wait_dispatch()
        return trigger

    trigger = asyncio.run(scenario())
    assert recorder.haptics == [HAPTIC_CONFIRMED, HAPTIC_FAILURE]
    ok, outcome = recorder.results[0]
    assert ok is False
    assert isinstance(outcome, RuntimeError)
    assert not trigger.busy


def test_close_cancels_pending_hold():
    recorder = Recorder()

    async def scenario():
        trigger = recorder.trigger()
        trigger.press()
        await asyncio.sleep(HOLD / 2)
        trigger.close()
        await asyncio.sleep(HOLD)
        assert trigger.press() is False
        return trigger

    trigger = asyncio.run(scenario())
    assert recorder.dispatches == 0
    assert trigger.state is PanicState.IDLE


def test_close_does_not_cancel_in_flight_dispatch():
    recorder = Recorder(dispatch_delay=HOLD)

    async def scenario():
        trigger = recorder.trigger()
        trigger.press()
        await asyncio.sleep(HOLD * 1.2)
        trigger.close()
        await trigger.wait_dispatch()

    asyncio.run(scenario())
    assert recorder.results == [(True, "sent")]


@pytest.mark.parametrize("action", ["release", "close"])
def test_release_or_close_when_idle_is_harmless(action):
    recorder = Recorder()

    async def scenario():
        trigger = recorder.trigger()
        result = getattr(trigger, action)()
        return trigger, result

    trigger, result = asyncio.run(scenario())
    assert trigger.state is PanicState.IDLE
    assert result in (False, None)
