"""Fixed-interval poller with an absolute deadline and one cancellation path.

The poller knows nothing about QR codes: it is given a check callable and
predicates that classify its results. It never touches the session store;
whoever consumes the terminal outcome decides what to do with it.
"""

import logging
import threading
import time
from typing import Any, Callable

from auth.types import PollOutcome, PollState

logger = logging.getLogger(__name__)


class Poller:
    """Drive repeated checks until success, timeout or cancellation.

    Ticks are strictly sequential. The next tick is due ``interval_seconds``
    after the previous one started; when a check overruns the interval the
    next tick queues behind it instead of overlapping. The deadline counts
    from the first tick and is enforced independently of the interval, so
    a slow network cannot stretch the total lifetime: once it passes no
    further tick is issued.

    A tick that raises is logged and swallowed. Only timeout, cancellation
    or a successful result end the run, and exactly one terminal outcome is
    ever produced.

    Usage:
        poller = Poller(check=lambda: client.check_qr(qid), is_success=...)
        poller.start(on_complete=handle_outcome)
        ...
        poller.cancel()  # teardown, safe to repeat
    """

    def __init__(
        self,
        check: Callable[[], Any],
        is_success: Callable[[Any], bool],
        is_progress: Callable[[Any], bool] | None = None,
        interval_seconds: float = 2.0,
        timeout_seconds: float = 300.0,
        should_cancel: Callable[[], bool] | None = None,
        on_state_change: Callable[[PollState], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        wait: Callable[[float], Any] | None = None,
        name: str = "poller",
    ):
        """
        Args:
            check: Performs one status request and returns its result
            is_success: True when a result is terminal-successful
            is_progress: True when a result means "scanned, awaiting confirm"
            interval_seconds: Spacing between tick starts
            timeout_seconds: Absolute ceiling from the first tick
            should_cancel: Consulted before every tick; True stops the run
                (e.g. another flow already signed in)
            on_state_change: Called with each new state
            clock: Monotonic clock, injectable for tests
            wait: Sleep used between ticks; defaults to waiting on the
                cancellation event so cancel() wakes it immediately
            name: Thread and log name
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self._check = check
        self._is_success = is_success
        self._is_progress = is_progress
        self._interval = interval_seconds
        self._timeout = timeout_seconds
        self._should_cancel = should_cancel
        self._on_state_change = on_state_change
        self._clock = clock
        self.name = name

        self._cancelled = threading.Event()
        self._wait = wait or self._cancelled.wait
        self._lock = threading.RLock()
        self._finished = threading.Event()

        self._state = PollState.PENDING
        self._ticks = 0
        self._ran = False
        self._started_at: float | None = None
        self._outcome: PollOutcome | None = None
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def ticks(self) -> int:
        return self._ticks

    @property
    def outcome(self) -> PollOutcome | None:
        return self._outcome

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self) -> PollOutcome:
        """Poll in the calling thread until a terminal outcome."""
        with self._lock:
            if self._ran:
                raise RuntimeError(f"{self.name} already ran")
            self._ran = True
            # Cancelled before it ever ran
            if self._outcome is not None:
                return self._outcome
            self._started_at = self._clock()

        deadline = self._started_at + self._timeout

        while True:
            with self._lock:
                if self._cancelled.is_set() or self._cancel_requested_elsewhere():
                    self._cancelled.set()
                    return self._finish(PollState.DONE_CANCELLED)
                tick_started = self._clock()
                if tick_started >= deadline:
                    return self._finish(PollState.DONE_TIMEOUT)
                self._ticks += 1
                tick = self._ticks

            try:
                result = self._check()
                success = self._is_success(result)
                progress = bool(self._is_progress and self._is_progress(result))
            except Exception as e:
                logger.warning(f"{self.name} tick {tick} failed, continuing: {e}")
            else:
                if success:
                    with self._lock:
                        if not self._cancelled.is_set():
                            return self._finish(PollState.DONE, result)
                    continue
                if progress and self._state is PollState.PENDING:
                    self._set_state(PollState.SCANNED_AWAITING_CONFIRM)

            delay = min(tick_started + self._interval, deadline) - self._clock()
            if delay > 0:
                self._wait(delay)

    def start(self, on_complete: Callable[[PollOutcome], None] | None = None) -> None:
        """Run on a daemon worker thread; on_complete receives the outcome."""
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")

        def target() -> None:
            outcome = self.run()
            if on_complete is None:
                return
            try:
                on_complete(outcome)
            except Exception:
                logger.exception(f"{self.name} completion handler failed")

        self._thread = threading.Thread(target=target, name=self.name, daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Stop future ticks. Idempotent; a tick already in flight is discarded.

        A poller that never started is finished on the spot.
        """
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            if self._started_at is None:
                self._started_at = self._clock()
                self._finish(PollState.DONE_CANCELLED)

    def join(self, timeout: float | None = None) -> PollOutcome | None:
        """Wait for the terminal outcome. Returns None if timeout elapses first."""
        self._finished.wait(timeout)
        return self._outcome

    def _cancel_requested_elsewhere(self) -> bool:
        if self._should_cancel is None:
            return False
        try:
            return bool(self._should_cancel())
        except Exception:
            logger.exception(f"{self.name} should_cancel check failed")
            return False

    def _set_state(self, state: PollState) -> None:
        self._state = state
        logger.debug(f"{self.name} -> {state.value}")
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(state)
        except Exception:
            logger.exception(f"{self.name} state callback failed")

    def _finish(self, state: PollState, result: Any = None) -> PollOutcome:
        """Record the terminal outcome. Caller holds the lock."""
        if self._outcome is not None:
            return self._outcome

        self._outcome = PollOutcome(
            state=state,
            result=result,
            ticks=self._ticks,
            elapsed_seconds=max(self._clock() - self._started_at, 0.0),
        )
        self._set_state(state)
        self._finished.set()
        logger.info(f"{self.name} finished: {state.value} after {self._ticks} ticks")
        return self._outcome
