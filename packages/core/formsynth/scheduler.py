"""Batch submission scheduler with cooperative cancellation.

Payloads are dispatched in fixed-size groups. Every delivery of a group is
awaited (settled) before the next group starts; between groups the
scheduler paces itself and inserts a safety cooldown after every
``cooldown_every`` successes.
"""

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from tqdm import tqdm

from .exceptions import DeliveryFailure
from .models import DeliveryOutcome, LogEntry, RowPayload, RunStatus, ScheduleResult
from .settings import EngineSettings


logger = logging.getLogger(__name__)

DeliverFn = Callable[[str, RowPayload], Awaitable[Union[DeliveryOutcome, bool]]]
LogSink = Callable[[LogEntry], None]


class CancellationToken:
    """
    Externally settable stop flag.

    Safe to set from another thread (e.g. a signal handler); the scheduler
    polls it between groups and while waiting.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, seconds: float, poll_interval: float = 0.1) -> bool:
        """
        Sleep for ``seconds`` in ``poll_interval`` slices.

        Returns:
            True if the full wait elapsed, False if cancelled meanwhile
        """
        deadline = time.monotonic() + seconds
        while True:
            if self.cancelled:
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return True
            await asyncio.sleep(min(poll_interval, remaining))


class RunLog:
    """In-memory, append-only log sink."""

    def __init__(self):
        self.entries: List[LogEntry] = []

    def __call__(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def last(self) -> Optional[LogEntry]:
        return self.entries[-1] if self.entries else None

    def by_status(self, status: RunStatus) -> List[LogEntry]:
        return [e for e in self.entries if e.status == status]


def _settle(payload: RowPayload, result) -> DeliveryOutcome:
    """Classify whatever a delivery returned or raised."""
    if isinstance(result, DeliveryOutcome):
        result.row_index = payload.row_index
        return result
    if isinstance(result, DeliveryFailure):
        return DeliveryOutcome(payload.row_index, False, reason=result.reason, status_code=result.status_code)
    if isinstance(result, BaseException):
        return DeliveryOutcome(payload.row_index, False, reason=str(result) or type(result).__name__)
    if result is False:
        return DeliveryOutcome(payload.row_index, False, reason="delivery reported failure")
    return DeliveryOutcome(payload.row_index, True)


class BatchScheduler:
    """
    Dispatches payloads as concurrent groups.

    Example:
        scheduler = BatchScheduler(FormDelivery())
        result = await scheduler.run(batch.payloads, form_url, token, log, delay_ms=500)
    """

    def __init__(
        self,
        deliver: DeliverFn,
        settings: Optional[EngineSettings] = None,
        show_progress: bool = False,
    ):
        self.deliver = deliver
        self.settings = settings or EngineSettings()
        self.show_progress = show_progress

    def pacing_seconds(self, delay_ms: float) -> float:
        """Inter-group pause for a configured delay; zero means full speed."""
        if delay_ms <= 0:
            return 0.0
        return max(self.settings.min_pacing_ms, delay_ms * self.settings.pacing_factor) / 1000.0

    def groups(self, payloads: Sequence[RowPayload]) -> List[List[RowPayload]]:
        size = self.settings.group_size
        return [list(payloads[i:i + size]) for i in range(0, len(payloads), size)]

    async def _dispatch_group(self, group: Sequence[RowPayload], endpoint_url: str) -> List[DeliveryOutcome]:
        results = await asyncio.gather(
            *(self.deliver(endpoint_url, payload) for payload in group),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, asyncio.CancelledError):
                raise result
        return [_settle(payload, result) for payload, result in zip(group, results)]

    async def run(
        self,
        payloads: Sequence[RowPayload],
        endpoint_url: str,
        cancel_token: Optional[CancellationToken] = None,
        log_sink: Optional[LogSink] = None,
        delay_ms: float = 0,
    ) -> ScheduleResult:
        """
        Deliver every payload, group by group.

        Args:
            payloads: Valid payloads in row order
            endpoint_url: Form URL (view or response URL)
            cancel_token: Stops new groups from starting once set
            log_sink: Receives one LogEntry per outcome plus cooldown and terminal entries
            delay_ms: Configured minimum delay; 0 disables pacing

        Returns:
            ScheduleResult whose status is DONE, ERROR or ABORTED
        """
        token = cancel_token or CancellationToken()
        poll = self.settings.poll_interval
        pacing = self.pacing_seconds(delay_ms)
        groups = self.groups(payloads)

        success = 0
        failures = 0
        outcomes: List[DeliveryOutcome] = []
        next_cooldown = self.settings.cooldown_every
        dispatched = 0

        def emit(msg: str, status: RunStatus, row: Optional[int] = None, final: bool = False) -> None:
            entry = LogEntry(msg=msg, status=status, count=success, row_index=row, terminal=final)
            if log_sink is not None:
                log_sink(entry)

        progress = tqdm(total=len(payloads), desc="Submitting responses", disable=not self.show_progress)
        try:
            for index, group in enumerate(groups):
                if token.cancelled:
                    logger.info(f"Cancellation observed before group {index + 1}/{len(groups)}")
                    break

                dispatched += 1
                group_outcomes = await self._dispatch_group(group, endpoint_url)
                for outcome in group_outcomes:
                    outcomes.append(outcome)
                    if outcome.success:
                        success += 1
                        emit(f"✅ Response #{outcome.row_index + 1}: Submission recorded.",
                             RunStatus.RUNNING, outcome.row_index)
                    else:
                        failures += 1
                        emit(f"❌ Response #{outcome.row_index + 1}: Delivery failed ({outcome.reason}).",
                             RunStatus.ERROR, outcome.row_index)
                progress.update(len(group))

                if index == len(groups) - 1:
                    break

                if success >= next_cooldown:
                    while next_cooldown <= success:
                        next_cooldown += self.settings.cooldown_every
                    seconds = self.settings.cooldown_seconds
                    emit(f"🛡️ Safety cooldown: pausing {seconds:g}s after {success} submissions.",
                         RunStatus.COOLDOWN)
                    await token.wait(seconds, poll)
                elif pacing > 0:
                    await token.wait(pacing, poll)
        finally:
            progress.close()

        cancelled = token.cancelled
        if cancelled:
            status = RunStatus.ABORTED
            emit(f"🛑 Run stopped by operator. {success} response(s) submitted.", status, final=True)
        elif success > 0 and success == len(payloads):
            status = RunStatus.DONE
            emit(f"🎊 All {success} responses submitted.", status, final=True)
        elif success > 0:
            status = RunStatus.DONE
            emit(f"⚠️ Completed with {success}/{len(payloads)} responses submitted.", status, final=True)
        else:
            status = RunStatus.ERROR
            emit("❌ No responses were submitted.", status, final=True)

        logger.info(
            f"Scheduler finished: {status.value}, {success} succeeded, {failures} failed, "
            f"{dispatched}/{len(groups)} groups dispatched"
        )
        return ScheduleResult(
            status=status,
            success_count=success,
            failure_count=failures,
            outcomes=outcomes,
            groups_dispatched=dispatched,
            cancelled=cancelled,
        )
