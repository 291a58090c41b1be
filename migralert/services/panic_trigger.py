"""
Press-and-hold panic trigger

IDLE --press--> PRESSING --hold elapsed--> CONFIRMED --> IDLE
                PRESSING --release/close--> IDLE

Only an uninterrupted hold fires the alert. Once fired, the dispatch runs to
completion; a busy flag blocks new presses until it settles.
"""
import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union

from migralert.core.config import settings

logger = logging.getLogger(__name__)

HAPTIC_CONFIRMED = 50
HAPTIC_SUCCESS = [100, 50, 100]
HAPTIC_FAILURE = 300

Haptic = Union[int, List[int]]


class PanicState(str, enum.Enum):
    IDLE = "idle"
    PRESSING = "pressing"
    CONFIRMED = "confirmed"


def _noop(*args, **kwargs):
    return None


class PanicTrigger:
    def __init__(
        self,
        dispatch: Callable[[], Awaitable[Any]],
        has_contacts: Callable[[], bool],
        on_progress: Optional[Callable[[float], None]] = None,
        on_haptic: Optional[Callable[[Haptic], None]] = None,
        on_result: Optional[Callable[[bool, Any], None]] = None,
        on_state: Optional[Callable[[PanicState], None]] = None,
        hold_seconds: Optional[float] = None,
        tick_seconds: Optional[float] = None,
    ):
        self.dispatch = dispatch
        self.has_contacts = has_contacts
        self.on_progress = on_progress or _noop
        self.on_haptic = on_haptic or _noop
        self.on_result = on_result or _noop
        self.on_state = on_state or _noop
        self.hold_seconds = settings.PANIC_HOLD_SECONDS if hold_seconds is None else hold_seconds
        self.tick_seconds = settings.PANIC_TICK_SECONDS if tick_seconds is None else tick_seconds

        self.state = PanicState.IDLE
        self.busy = False
        self.closed = False

        self._timer: Optional[asyncio.TimerHandle] = None
        self._progress_task: Optional[asyncio.Task] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self._pressed_at = 0.0

    def _set_state(self, state: PanicState) -> None:
        self.state = state
        self.on_state(state)

    # ============================================
    # GESTURE
    # ============================================

    def press(self) -> bool:
        """Start the hold. Returns False when the press is ignored."""
        if self.closed or self.busy or self.state is not PanicState.IDLE:
            return False
        if not self.has_contacts():
            logger.info("[Panic] Press ignored: no emergency contacts")
            return False

        loop = asyncio.get_running_loop()
        self._pressed_at = loop.time()
        self._set_state(PanicState.PRESSING)
        self._timer = loop.call_later(self.hold_seconds, self._on_hold_elapsed)
        self._progress_task = loop.create_task(self._tick_progress())
        return True

    def release(self) -> bool:
        """Let go before the hold completes. Returns False if nothing was pending."""
        if self.state is not PanicState.PRESSING:
            return False
        self._cancel_pending()
        self.on_progress(0.0)
        self._set_state(PanicState.IDLE)
        return True

    def close(self) -> None:
        """Tear down: pending timers are cancelled, an in-flight dispatch is not."""
        self.closed = True
        if self.state is PanicState.PRESSING:
            self._cancel_pending()
            self._set_state(PanicState.IDLE)

    def _cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._progress_task is not None:
            self._progress_task.cancel()
            self._progress_task = None

    async def _tick_progress(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            elapsed = loop.time() - self._pressed_at
            percent = min(100.0, elapsed / self.hold_seconds * 100.0) if self.hold_seconds > 0 else 100.0
            self.on_progress(percent)
            if percent >= 100.0:
                return
            await asyncio.sleep(self.tick_seconds)

    # ============================================
    # DISPATCH
    # ============================================

    def _on_hold_elapsed(self) -> None:
        self._timer = None
        if self._progress_task is not None:
            self._progress_task.cancel()
            self._progress_task = None
        if self.closed or self.state is not PanicState.PRESSING:
            return

        self._set_state(PanicState.CONFIRMED)
        self.on_progress(100.0)
        self.on_haptic(HAPTIC_CONFIRMED)
        logger.warning("[Panic] 🚨 Hold confirmed, dispatching emergency alert")

        self.busy = True
        self._dispatch_task = asyncio.get_running_loop().create_task(self._run_dispatch())
        self._set_state(PanicState.IDLE)

    async def _run_dispatch(self) -> None:
        ok = False
        outcome: Any = None
        try:
            outcome = await self.dispatch()
            ok = True
        except Exception as e:
            logger.error(f"[Panic] ❌ Dispatch failed: {e}")
            outcome = e
        finally:
            self.busy = False

        self.on_haptic(HAPTIC_SUCCESS if ok else HAPTIC_FAILURE)
        self.on_result(ok, outcome)

    async def wait_dispatch(self) -> None:
        """Wait for the in-flight dispatch, if any, to settle."""
        task = self._dispatch_task
        if task is not None and not task.done():
            await asyncio.shield(task)
