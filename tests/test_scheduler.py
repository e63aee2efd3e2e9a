"""Tests for the batch submission scheduler."""

import asyncio
import time

import pytest

from formsynth.exceptions import DeliveryFailure
from formsynth.models import DeliveryOutcome, LogEntry, RowPayload, RunStatus
from formsynth.scheduler import BatchScheduler, CancellationToken, RunLog
from formsynth.settings import EngineSettings


FAST = EngineSettings(cooldown_seconds=0.01, poll_interval=0.001)


def _payloads(n):
    return [RowPayload(row_index=i, answers={"1": "A"}) for i in range(n)]


class FakeDelivery:
    """Records calls and fails the given row indices."""

    def __init__(self, fail=(), on_call=None):
        self.fail = set(fail)
        self.on_call = on_call
        self.calls = []

    async def __call__(self, url, payload):
        self.calls.append(payload.row_index)
        if self.on_call is not None:
            self.on_call(payload)
        await asyncio.sleep(0)
        return payload.row_index not in self.fail


def _run(scheduler, payloads, **kwargs):
    log = RunLog()
    result = asyncio.run(scheduler.run(payloads, "https://example.test/viewform", log_sink=log, **kwargs))
    return result, log


class TestBatchScheduler:
    """Tests for BatchScheduler.run."""

    def test_partial_group_failure(self):
        """Test a group with two failed deliveries logs 3 successes and 2 errors."""
        scheduler = BatchScheduler(FakeDelivery(fail={1, 3}), settings=FAST)
        result, log = _run(scheduler, _payloads(5))

        outcome_entries = [e for e in log.entries if e.row_index is not None]
        assert len([e for e in outcome_entries if e.status == RunStatus.RUNNING]) == 3
        assert len([e for e in outcome_entries if e.status == RunStatus.ERROR]) == 2
        assert result.success_count == 3
        assert result.failure_count == 2
        assert result.status == RunStatus.DONE
        assert log.last.status == RunStatus.DONE

    def test_success_counter_is_cumulative(self):
        """Test each entry carries the success count at emission time."""
        scheduler = BatchScheduler(FakeDelivery(), settings=FAST)
        _, log = _run(scheduler, _payloads(7))
        running = log.by_status(RunStatus.RUNNING)
        assert [e.count for e in running] == list(range(1, 8))
        assert log.last.count == 7

    def test_groups_are_sequential(self):
        """Test every delivery of a group starts before the next group."""
        delivery = FakeDelivery()
        scheduler = BatchScheduler(delivery, settings=FAST)
        result, _ = _run(scheduler, _payloads(12))
        assert sorted(delivery.calls[:5]) == [0, 1, 2, 3, 4]
        assert sorted(delivery.calls[5:10]) == [5, 6, 7, 8, 9]
        assert result.groups_dispatched == 3

    def test_all_failed_is_error(self):
        """Test zero successes ends in ERROR."""
        scheduler = BatchScheduler(FakeDelivery(fail=range(6)), settings=FAST)
        result, log = _run(scheduler, _payloads(6))
        assert result.status == RunStatus.ERROR
        assert log.last.status == RunStatus.ERROR
        assert log.last.is_terminal

    def test_only_final_entry_is_terminal(self):
        """Test per-row failure entries never read as the end of the run."""
        scheduler = BatchScheduler(FakeDelivery(fail={1, 3}), settings=FAST)
        _, log = _run(scheduler, _payloads(6))

        row_errors = [e for e in log.by_status(RunStatus.ERROR) if e.row_index is not None]
        assert [e.row_index for e in row_errors] == [1, 3]
        assert not any(e.is_terminal for e in row_errors)
        assert [e.is_terminal for e in log.entries].count(True) == 1
        assert log.last.is_terminal
        assert log.last.status == RunStatus.DONE
        assert log.last.to_dict()["terminal"] is True

    def test_terminal_entry_requires_final_status(self):
        """Test a RUNNING entry cannot be marked as closing the run."""
        with pytest.raises(ValueError):
            LogEntry(msg="still going", status=RunStatus.RUNNING, count=0, terminal=True)

    def test_empty_payloads_is_error(self):
        scheduler = BatchScheduler(FakeDelivery(), settings=FAST)
        result, _ = _run(scheduler, [])
        assert result.status == RunStatus.ERROR
        assert result.groups_dispatched == 0

    def test_raised_errors_are_failures(self):
        """Test exceptions from the delivery function are settled as failures."""
        async def deliver(url, payload):
            if payload.row_index == 0:
                raise DeliveryFailure("HTTP 400", status_code=400)
            if payload.row_index == 1:
                raise RuntimeError("boom")
            return DeliveryOutcome(row_index=-1, success=True)

        scheduler = BatchScheduler(deliver, settings=FAST)
        result, log = _run(scheduler, _payloads(3))

        assert result.success_count == 1
        reasons = {o.row_index: o.reason for o in result.outcomes if not o.success}
        assert reasons == {0: "HTTP 400", 1: "boom"}
        assert [o.row_index for o in result.outcomes] == [0, 1, 2]
        assert "HTTP 400" in log.by_status(RunStatus.ERROR)[0].msg

    def test_cooldown_after_threshold(self):
        """Test a cooldown entry follows each multiple of cooldown_every, except after the last group."""
        settings = EngineSettings(cooldown_every=5, cooldown_seconds=0.01, poll_interval=0.001)
        scheduler = BatchScheduler(FakeDelivery(), settings=settings)
        _, log = _run(scheduler, _payloads(15))

        cooldowns = log.by_status(RunStatus.COOLDOWN)
        assert [e.count for e in cooldowns] == [5, 10]

    def test_cooldown_with_failures(self):
        """Test the cooldown fires once the success count passes the threshold."""
        settings = EngineSettings(cooldown_every=4, cooldown_seconds=0.01, poll_interval=0.001)
        scheduler = BatchScheduler(FakeDelivery(fail={0}), settings=settings)
        _, log = _run(scheduler, _payloads(10))
        assert [e.count for e in log.by_status(RunStatus.COOLDOWN)] == [4]

    def test_cancel_stops_new_groups(self):
        """Test cancellation lets the in-flight group finish and dispatches nothing more."""
        token = CancellationToken()
        delivery = FakeDelivery(on_call=lambda payload: token.cancel())
        scheduler = BatchScheduler(delivery, settings=FAST)
        result, log = _run(scheduler, _payloads(12), cancel_token=token)

        assert result.status == RunStatus.ABORTED
        assert result.cancelled
        assert result.groups_dispatched == 1
        assert result.success_count == 5
        assert sorted(delivery.calls) == [0, 1, 2, 3, 4]
        assert log.last.status == RunStatus.ABORTED
        assert log.last.count == 5

    def test_cancel_interrupts_cooldown(self):
        """Test a long cooldown ends promptly once cancelled."""
        token = CancellationToken()
        settings = EngineSettings(cooldown_every=5, cooldown_seconds=30, poll_interval=0.01)
        delivery = FakeDelivery(on_call=lambda payload: payload.row_index == 4 and token.cancel())
        scheduler = BatchScheduler(delivery, settings=settings)

        start = time.time()
        result, _ = _run(scheduler, _payloads(10), cancel_token=token)
        assert time.time() - start < 5
        assert result.status == RunStatus.ABORTED

    def test_cancelled_before_start(self):
        token = CancellationToken()
        token.cancel()
        delivery = FakeDelivery()
        result, _ = _run(BatchScheduler(delivery, settings=FAST), _payloads(5), cancel_token=token)
        assert delivery.calls == []
        assert result.status == RunStatus.ABORTED
        assert result.success_count == 0


class TestPacing:
    """Tests for inter-group pacing."""

    @pytest.mark.parametrize("delay_ms,expected", [(0, 0.0), (-5, 0.0), (100, 0.1), (1000, 0.3), (200, 0.1)])
    def test_pacing_seconds(self, delay_ms, expected):
        assert BatchScheduler(FakeDelivery()).pacing_seconds(delay_ms) == pytest.approx(expected)

    def test_pacing_applied_between_groups(self):
        """Test two pauses are taken for three groups."""
        scheduler = BatchScheduler(FakeDelivery(), settings=EngineSettings(poll_interval=0.01))
        start = time.time()
        _run(scheduler, _payloads(15), delay_ms=500)
        assert time.time() - start >= 0.3 - 0.02


class TestCancellationToken:
    def test_wait_completes(self):
        assert asyncio.run(CancellationToken().wait(0.01, 0.001)) is True

    def test_wait_cancelled(self):
        token = CancellationToken()
        token.cancel()
        assert asyncio.run(token.wait(10, 0.001)) is False
