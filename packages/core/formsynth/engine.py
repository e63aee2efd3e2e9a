"""
End-to-end response generation run.

    Schema + weights → QuotaAllocator → decks
                     → DemographicAligner → aligned decks
                     → PayloadCompiler → payloads
                     → BatchScheduler → outcomes / log stream

Any exception escaping allocation, alignment or compilation is fatal: it
is logged as a terminal ENGINE ERROR entry and re-raised as
FatalEngineError, with no rows dispatched.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .alignment import DemographicAligner, ScoringStrategy
from .allocator import QuotaAllocator
from .classifiers import DemographicRole
from .compiler import PayloadCompiler
from .exceptions import FatalEngineError, RowValidationError
from .models import CompiledBatch, FormAnalysis, FormQuestion, LogEntry, RunConfig, RunResult, RunStatus
from .names import generate_names
from .scheduler import BatchScheduler, CancellationToken, DeliverFn, LogSink, RunLog
from .settings import EngineSettings


logger = logging.getLogger(__name__)


@dataclass
class ResponsePlan:
    """Everything computed before dispatch."""
    target_count: int
    decks: Dict[str, List[str]]
    aligned: Dict[str, List[str]]
    roles: Dict[DemographicRole, str]
    batch: CompiledBatch = field(default_factory=CompiledBatch)


def build_plan(
    questions: Sequence[FormQuestion],
    target_count: int,
    overrides: Optional[Dict[str, List[str]]] = None,
    names: Optional[Sequence[str]] = None,
    hidden_fields: Optional[Dict[str, str]] = None,
    settings: Optional[EngineSettings] = None,
    rng: Optional[random.Random] = None,
    scorer: Optional[ScoringStrategy] = None,
    on_invalid=None,
) -> ResponsePlan:
    """
    Allocate, align and compile ``target_count`` rows without sending anything.

    Errors from the individual stages propagate unchanged; the caller
    decides whether they are fatal.
    """
    rng = rng or random.Random()
    settings = settings or EngineSettings()

    allocator = QuotaAllocator(rng=rng)
    decks = allocator.allocate_all(questions, target_count)

    aligner = DemographicAligner(scorer=scorer, rng=rng)
    roles = aligner.detect_roles(questions, decks)
    aligned = aligner.align(questions, decks)

    compiler = PayloadCompiler(
        questions,
        aligned,
        overrides=overrides,
        names=names,
        hidden_fields=hidden_fields,
        settings=settings,
        rng=rng,
    )
    batch = compiler.compile_all(target_count, on_invalid=on_invalid)
    return ResponsePlan(target_count=target_count, decks=decks, aligned=aligned, roles=roles, batch=batch)


class ResponseEngine:
    """
    Runs a complete generation and submission pass.

    Example:
        engine = ResponseEngine(FormDelivery(), settings=EngineSettings.from_env(), seed=42)
        result = await engine.run(analysis.questions, 100, endpoint_url=form_url,
                                  hidden_fields=analysis.hidden_fields)
    """

    def __init__(
        self,
        deliver: DeliverFn,
        settings: Optional[EngineSettings] = None,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        scorer: Optional[ScoringStrategy] = None,
        show_progress: bool = False,
    ):
        self.settings = settings or EngineSettings()
        self.rng = rng or random.Random(seed)
        self.scorer = scorer
        self.scheduler = BatchScheduler(deliver, settings=self.settings, show_progress=show_progress)

    async def run(
        self,
        questions: Sequence[FormQuestion],
        target_count: int,
        overrides: Optional[Dict[str, List[str]]] = None,
        names: Optional[Sequence[str]] = None,
        endpoint_url: str = "",
        cancel_token: Optional[CancellationToken] = None,
        log_sink: Optional[LogSink] = None,
        hidden_fields: Optional[Dict[str, str]] = None,
        delay_ms: float = 0,
    ) -> RunResult:
        """
        Generate and submit ``target_count`` responses.

        Returns:
            RunResult with the terminal status and confirmed success count

        Raises:
            FatalEngineError: If the schema cannot be allocated, aligned or compiled
        """
        run_log = RunLog()

        def sink(entry: LogEntry) -> None:
            run_log(entry)
            if log_sink is not None:
                log_sink(entry)

        def on_invalid(error: RowValidationError) -> None:
            sink(LogEntry(msg=f"⚠️ {error}. Row skipped.", status=RunStatus.ERROR, count=0,
                          row_index=error.row_index))

        sink(LogEntry(msg=f"🚀 Preparing {target_count} responses for {len(questions)} questions.",
                      status=RunStatus.INIT, count=0))

        try:
            plan = build_plan(
                questions,
                target_count,
                overrides=overrides,
                names=names,
                hidden_fields=hidden_fields,
                settings=self.settings,
                rng=self.rng,
                scorer=self.scorer,
                on_invalid=on_invalid,
            )
        except Exception as e:
            logger.error(f"Engine failure while building responses: {e}")
            sink(LogEntry(msg=f"❌ ENGINE ERROR: {e}", status=RunStatus.ERROR, count=0, terminal=True))
            raise FatalEngineError(f"Could not build responses: {e}", stage="plan") from e

        batch = plan.batch
        sink(LogEntry(
            msg=f"📡 Dispatching {batch.valid_count} response(s) ({batch.invalid_count} skipped).",
            status=RunStatus.RUNNING,
            count=0,
        ))

        schedule = await self.scheduler.run(
            batch.payloads,
            endpoint_url,
            cancel_token=cancel_token,
            log_sink=sink,
            delay_ms=delay_ms,
        )

        return RunResult(
            status=schedule.status,
            success_count=schedule.success_count,
            target_count=target_count,
            valid_rows=batch.valid_count,
            invalid_rows=batch.invalid_count,
            failure_count=schedule.failure_count,
            logs=list(run_log.entries),
        )

    async def run_config(
        self,
        analysis: FormAnalysis,
        config: RunConfig,
        endpoint_url: str,
        cancel_token: Optional[CancellationToken] = None,
        log_sink: Optional[LogSink] = None,
    ) -> RunResult:
        """Run with operator choices taken from a :class:`RunConfig`."""
        if config.name_source == "custom" or config.names:
            names = generate_names(len(config.names), "custom", custom=config.names, rng=self.rng)
        else:
            names = generate_names(config.target_count, config.name_source, rng=self.rng)
        return await self.run(
            analysis.questions,
            config.target_count,
            overrides=config.custom_field_responses,
            names=names,
            endpoint_url=endpoint_url,
            cancel_token=cancel_token,
            log_sink=log_sink,
            hidden_fields=analysis.hidden_fields,
            delay_ms=config.delay_min,
        )


async def run_autofill(
    questions: Sequence[FormQuestion],
    target_count: int,
    overrides: Optional[Dict[str, List[str]]],
    names_pool: Optional[Sequence[str]],
    endpoint_url: str,
    cancel_token: Optional[CancellationToken],
    log_sink: Optional[LogSink],
    deliver: DeliverFn,
    **kwargs,
) -> RunResult:
    """Functional entry point mirroring :meth:`ResponseEngine.run`."""
    engine_kwargs = {k: kwargs.pop(k) for k in ("settings", "seed", "rng", "scorer", "show_progress") if k in kwargs}
    engine = ResponseEngine(deliver, **engine_kwargs)
    return await engine.run(
        questions,
        target_count,
        overrides=overrides,
        names=names_pool,
        endpoint_url=endpoint_url,
        cancel_token=cancel_token,
        log_sink=log_sink,
        **kwargs,
    )
