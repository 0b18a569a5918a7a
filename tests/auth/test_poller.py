"""Tests for Poller - timing, cancellation and single terminal delivery.

Runs on a fake clock: the poller's waits advance time instantly.
"""

import threading

import pytest

from auth.poller import Poller
from auth.types import PollState


PENDING = {"status": 0}
SCANNED = {"status": 3}
CONFIRMED = {"status": 2, "token": "T"}


def _is_success(result):
    return result["status"] == 2 and bool(result.get("token"))


def _is_progress(result):
    return result["status"] == 3


class ScriptedCheck:
    """Returns scripted results per tick (1-based); defaults to pending."""

    def __init__(self, script=None, default=PENDING):
        self.script = script or {}
        self.default = default
        self.calls = 0

    def __call__(self):
        self.calls += 1
        outcome = self.script.get(self.calls, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def make_poller(clock):
    def _make(check, **kwargs):
        kwargs.setdefault("interval_seconds", 2.0)
        kwargs.setdefault("timeout_seconds", 10.0)
        return Poller(
            check=check,
            is_success=_is_success,
            is_progress=_is_progress,
            clock=clock,
            wait=clock.wait,
            **kwargs,
        )

    return _make


class TestTimeout:
    """The deadline bounds the number of ticks."""

    def test_always_pending_ticks_five_times_in_ten_seconds(self, make_poller, clock):
        check = ScriptedCheck()
        poller = make_poller(check)

        outcome = poller.run()

        assert outcome.state is PollState.DONE_TIMEOUT
        assert check.calls == 5
        assert outcome.ticks == 5
        assert clock.now == pytest.approx(10.0)

    def test_slow_check_does_not_extend_deadline(self, make_poller, clock):
        def slow_check():
            clock.advance(3.0)
            return PENDING

        poller = make_poller(slow_check)

        outcome = poller.run()

        assert outcome.state is PollState.DONE_TIMEOUT
        # Ticks start at 0, 3, 6, 9; the one at 9 ends at 12 and nothing follows
        assert outcome.ticks == 4

    def test_never_waits_past_deadline(self, make_poller, clock):
        poller = make_poller(ScriptedCheck(), interval_seconds=4.0, timeout_seconds=10.0)

        poller.run()

        assert clock.waits == [4.0, 4.0, 2.0]


class TestSuccess:
    """At most one adoption per session."""

    def test_success_stops_polling(self, make_poller):
        check = ScriptedCheck({3: CONFIRMED, 4: CONFIRMED, 5: CONFIRMED})
        completions = []
        poller = make_poller(check)

        outcome = poller.run()
        completions.append(outcome)

        assert outcome.state is PollState.DONE
        assert outcome.result == CONFIRMED
        assert check.calls == 3
        assert len(completions) == 1

    def test_scan_moves_to_awaiting_confirm(self, make_poller):
        states = []
        check = ScriptedCheck({1: SCANNED, 2: SCANNED, 3: CONFIRMED})
        poller = make_poller(check, on_state_change=states.append)

        poller.run()

        assert states == [PollState.SCANNED_AWAITING_CONFIRM, PollState.DONE]

    def test_confirm_without_token_keeps_polling(self, make_poller):
        check = ScriptedCheck(default={"status": 2})
        poller = make_poller(check)

        outcome = poller.run()

        assert outcome.state is PollState.DONE_TIMEOUT
        assert check.calls == 5


class TestTickErrors:
    """A flaky check never aborts the poll."""

    def test_errors_are_swallowed(self, make_poller):
        check = ScriptedCheck({1: RuntimeError("network"), 2: ValueError("bad json"), 3: CONFIRMED})
        poller = make_poller(check)

        outcome = poller.run()

        assert outcome.state is PollState.DONE
        assert check.calls == 3

    def test_failing_predicate_counts_as_failed_tick(self, clock):
        calls = []

        def is_success(result):
            calls.append(result)
            if len(calls) == 1:
                raise KeyError("status")
            return True

        poller = Poller(
            check=lambda: PENDING, is_success=is_success, clock=clock, wait=clock.wait,
            interval_seconds=2.0, timeout_seconds=10.0,
        )

        assert poller.run().state is PollState.DONE
        assert len(calls) == 2


class TestCancellation:
    """Cancelling stops ticking; exactly one terminal outcome."""

    def test_cancel_between_ticks_prevents_next_tick(self, make_poller):
        holder = {}

        def check():
            check.calls += 1
            if check.calls == 2:
                holder["poller"].cancel()
            return PENDING

        check.calls = 0
        poller = make_poller(check)
        holder["poller"] = poller

        outcome = poller.run()

        assert outcome.state is PollState.DONE_CANCELLED
        assert check.calls == 2

    def test_success_during_cancel_is_discarded(self, make_poller):
        holder = {}

        def check():
            holder["poller"].cancel()
            return CONFIRMED

        poller = make_poller(check)
        holder["poller"] = poller

        outcome = poller.run()

        assert outcome.state is PollState.DONE_CANCELLED
        assert outcome.result is None

    def test_cancel_is_idempotent(self, make_poller):
        poller = make_poller(ScriptedCheck())

        poller.cancel()
        poller.cancel()

        assert poller.state is PollState.DONE_CANCELLED
        assert poller.ticks == 0

    def test_cancel_before_run_issues_no_ticks(self, make_poller):
        check = ScriptedCheck()
        poller = make_poller(check)

        poller.cancel()
        outcome = poller.run()

        assert outcome.state is PollState.DONE_CANCELLED
        assert check.calls == 0

    def test_should_cancel_stops_before_next_tick(self, make_poller):
        check = ScriptedCheck()
        signed_in = {"value": False}

        def check_and_flag():
            result = check()
            if check.calls == 2:
                signed_in["value"] = True
            return result

        poller = make_poller(check_and_flag, should_cancel=lambda: signed_in["value"])

        outcome = poller.run()

        assert outcome.state is PollState.DONE_CANCELLED
        assert check.calls == 2

    def test_run_twice_raises(self, make_poller):
        poller = make_poller(ScriptedCheck({1: CONFIRMED}))
        poller.run()

        with pytest.raises(RuntimeError):
            poller.run()


class TestBackgroundThread:
    """start()/cancel()/join() with real threads."""

    def test_start_delivers_outcome_once(self):
        completions = []
        done = threading.Event()

        def on_complete(outcome):
            completions.append(outcome)
            done.set()

        poller = Poller(
            check=ScriptedCheck({2: CONFIRMED}),
            is_success=_is_success,
            interval_seconds=0.01,
            timeout_seconds=5.0,
        )

        poller.start(on_complete=on_complete)

        assert done.wait(5.0)
        assert poller.join(5.0).state is PollState.DONE
        assert len(completions) == 1

    def test_cancel_wakes_waiting_thread(self):
        check = ScriptedCheck()
        poller = Poller(
            check=check,
            is_success=_is_success,
            interval_seconds=60.0,
            timeout_seconds=300.0,
        )

        poller.start()
        poller.cancel()
        outcome = poller.join(5.0)

        assert outcome is not None
        assert outcome.state is PollState.DONE_CANCELLED
        calls_after_cancel = check.calls
        assert poller.join(0.05).ticks == calls_after_cancel

    def test_start_twice_raises(self):
        poller = Poller(check=ScriptedCheck(), is_success=_is_success, interval_seconds=60.0)
        poller.start()
        try:
            with pytest.raises(RuntimeError):
                poller.start()
        finally:
            poller.cancel()
            poller.join(5.0)


class TestValidation:

    @pytest.mark.parametrize("kwargs", [{"interval_seconds": 0}, {"timeout_seconds": -1}])
    def test_rejects_non_positive_durations(self, kwargs):
        with pytest.raises(ValueError):
            Poller(check=ScriptedCheck(), is_success=_is_success, **kwargs)
