"""
Form Synthetic Response Engine

Generates weighted, demographically consistent synthetic responses for a
scraped Google Form and submits them in paced, cancellable batches.

Basic usage:
    from formsynth import FormAnalysis, ResponseEngine, FormDelivery

    analysis = FormAnalysis.model_validate(schema)
    engine = ResponseEngine(FormDelivery(), seed=42)
    result = await engine.run(analysis.questions, 100, endpoint_url=form_url,
                              hidden_fields=analysis.hidden_fields)

    # Plan only, nothing submitted
    from formsynth import build_plan
    plan = build_plan(analysis.questions, 100)

CLI usage:
    python -m formsynth plan --schema form.json --count 100 --output ./output
    python -m formsynth run --schema form.json --url https://docs.google.com/forms/d/e/.../viewform
"""

__version__ = "1.0.0"

from .models import (
    FormOption,
    FormQuestion,
    FormAnalysis,
    RunConfig,
    QuestionType,
    RunStatus,
    LogEntry,
    RowPayload,
    CompiledBatch,
    DeliveryOutcome,
    RunResult,
)
from .allocator import QuotaAllocator, allocate_counts, build_deck
from .alignment import (
    DemographicAligner,
    ScoringStrategy,
    RuleTableScorer,
    PlausibilityRule,
    Profile,
)
from .classifiers import DemographicRole, classify_demographic
from .compiler import PayloadCompiler
from .scheduler import BatchScheduler, CancellationToken, RunLog
from .delivery import FormDelivery
from .engine import ResponseEngine, ResponsePlan, build_plan, run_autofill
from .settings import EngineSettings
from .weights import suggest_weights, apply_suggested_weights
from .audit import audit_plan
from .exporters import export_plan
from .exceptions import (
    FormSynthError,
    SchemaError,
    RowValidationError,
    DeliveryFailure,
    FatalEngineError,
    ConfigurationError,
)

__all__ = [
    "FormOption",
    "FormQuestion",
    "FormAnalysis",
    "RunConfig",
    "QuestionType",
    "RunStatus",
    "LogEntry",
    "RowPayload",
    "CompiledBatch",
    "DeliveryOutcome",
    "RunResult",
    "QuotaAllocator",
    "allocate_counts",
    "build_deck",
    "DemographicAligner",
    "ScoringStrategy",
    "RuleTableScorer",
    "PlausibilityRule",
    "Profile",
    "DemographicRole",
    "classify_demographic",
    "PayloadCompiler",
    "BatchScheduler",
    "CancellationToken",
    "RunLog",
    "FormDelivery",
    "ResponseEngine",
    "ResponsePlan",
    "build_plan",
    "run_autofill",
    "EngineSettings",
    "suggest_weights",
    "apply_suggested_weights",
    "audit_plan",
    "export_plan",
    "FormSynthError",
    "SchemaError",
    "RowValidationError",
    "DeliveryFailure",
    "FatalEngineError",
    "ConfigurationError",
]
