"""Integration tests for the end-to-end response engine."""

import asyncio
import random
from collections import Counter
from unittest.mock import patch

import pytest

from formsynth.engine import ResponseEngine, build_plan, run_autofill
from formsynth.exceptions import FatalEngineError
from formsynth.models import RunConfig, RunStatus
from formsynth.scheduler import CancellationToken, RunLog
from formsynth.settings import EngineSettings

from conftest import make_question


FAST = EngineSettings(cooldown_seconds=0.01, poll_interval=0.001)
URL = "https://docs.google.com/forms/d/e/abc/viewform"


class RecordingDelivery:
    def __init__(self, fail=()):
        self.fail = set(fail)
        self.payloads = []

    async def __call__(self, url, payload):
        self.payloads.append(payload)
        return payload.row_index not in self.fail


class TestBuildPlan:
    """Tests for build_plan."""

    def test_plan_marginals(self, survey_questions):
        """Test compiled answers keep the exact allocated option counts."""
        plan = build_plan(survey_questions, 40, names=["Asha Rao"], rng=random.Random(9))

        assert plan.batch.valid_count == 40
        ages = Counter(p.answers["1002"] for p in plan.batch.payloads)
        assert ages == {"Under 18": 8, "18-24": 12, "25-34": 12, "55+": 8}

    def test_plan_is_reproducible(self, survey_questions):
        a = build_plan(survey_questions, 20, rng=random.Random(1))
        b = build_plan(survey_questions, 20, rng=random.Random(1))
        assert [p.answers for p in a.batch.payloads] == [p.answers for p in b.batch.payloads]

    def test_plan_roles(self, survey_questions):
        plan = build_plan(survey_questions, 10, rng=random.Random(0))
        assert set(role.value for role in plan.roles) == {"age", "profession"}


class TestResponseEngine:
    """Tests for ResponseEngine.run."""

    def test_run_completes(self, survey_analysis):
        delivery = RecordingDelivery()
        engine = ResponseEngine(delivery, settings=FAST, seed=3)
        log = RunLog()
        result = asyncio.run(engine.run(
            survey_analysis.questions, 12, names=["Asha Rao"], endpoint_url=URL,
            log_sink=log, hidden_fields=survey_analysis.hidden_fields,
        ))

        assert result.status == RunStatus.DONE
        assert result.success_count == 12
        assert result.success_rate == 1.0
        assert log.entries[0].status == RunStatus.INIT
        assert log.last.status == RunStatus.DONE
        assert result.logs == log.entries
        assert delivery.payloads[0].hidden_fields == {"fvv": "1", "fbzx": "-123456"}

    def test_invalid_rows_logged_and_skipped(self):
        """Test rows failing required validation are reported and never dispatched."""
        questions = [
            make_question("c", "Comment", qtype="PARAGRAPH", required=True),
            make_question("q", "Pick", [("A", 100)]),
        ]
        delivery = RecordingDelivery()
        engine = ResponseEngine(delivery, settings=FAST, seed=0)
        result = asyncio.run(engine.run(questions, 4, overrides={"c": ["Fine", ""]}, endpoint_url=URL))

        assert result.valid_rows == 2
        assert result.invalid_rows == 2
        assert [p.row_index for p in delivery.payloads] == [0, 2]
        skipped = [e for e in result.logs if e.status == RunStatus.ERROR and e.row_index is not None]
        assert [e.row_index for e in skipped] == [1, 3]
        assert not any(e.is_terminal for e in skipped)
        assert result.logs[-1].is_terminal
        assert result.status == RunStatus.DONE

    def test_fatal_error(self, survey_questions):
        """Test a failure while building rows is logged and raised as fatal."""
        delivery = RecordingDelivery()
        engine = ResponseEngine(delivery, settings=FAST)
        log = RunLog()

        with patch("formsynth.engine.QuotaAllocator.allocate_all", side_effect=RuntimeError("bad schema")):
            with pytest.raises(FatalEngineError) as exc_info:
                asyncio.run(engine.run(survey_questions, 5, endpoint_url=URL, log_sink=log))

        assert exc_info.value.stage == "plan"
        assert log.last.status == RunStatus.ERROR
        assert "ENGINE ERROR" in log.last.msg
        assert log.last.is_terminal
        assert not any(e.is_terminal for e in log.entries[:-1])
        assert delivery.payloads == []

    def test_all_deliveries_fail(self, survey_questions):
        engine = ResponseEngine(RecordingDelivery(fail=range(10)), settings=FAST, seed=1)
        result = asyncio.run(engine.run(survey_questions, 10, endpoint_url=URL))
        assert result.status == RunStatus.ERROR
        assert result.success_count == 0
        assert result.failure_count == 10

    def test_cancelled_run(self, survey_questions):
        token = CancellationToken()
        token.cancel()
        engine = ResponseEngine(RecordingDelivery(), settings=FAST)
        result = asyncio.run(engine.run(survey_questions, 10, endpoint_url=URL, cancel_token=token))
        assert result.status == RunStatus.ABORTED
        assert result.logs[-1].is_terminal

    def test_run_config(self, survey_analysis):
        """Test a RunConfig drives names, overrides and count."""
        delivery = RecordingDelivery()
        engine = ResponseEngine(delivery, settings=FAST, seed=4)
        config = RunConfig(
            target_count=6,
            name_source="custom",
            names=["Asha Rao", "Ravi Iyer"],
            custom_field_responses={"feedback": ["Great form"]},
        )
        result = asyncio.run(engine.run_config(survey_analysis, config, URL))

        assert result.success_count == 6
        names = [p.answers["1001"] for p in delivery.payloads]
        assert names == ["Asha Rao", "Ravi Iyer"] * 3
        assert all(p.answers["1005"] == "Great form" for p in delivery.payloads)
        assert all(p.page_history == "0,1" for p in delivery.payloads)

    def test_run_config_delay_paces_groups(self, survey_analysis):
        """Test the configured minimum delay reaches the scheduler."""
        engine = ResponseEngine(RecordingDelivery(), settings=FAST, seed=4)
        config = RunConfig(target_count=6, delay_min=20)

        with patch.object(engine.scheduler, "run", wraps=engine.scheduler.run) as scheduled:
            result = asyncio.run(engine.run_config(survey_analysis, config, URL))

        assert result.success_count == 6
        assert scheduled.call_args.kwargs["delay_ms"] == 20
        assert "delay_max" not in RunConfig.model_fields


class TestRunAutofill:
    def test_functional_entry_point(self, survey_questions):
        log = RunLog()
        result = asyncio.run(run_autofill(
            survey_questions, 5, None, ["Asha Rao"], URL, None, log,
            RecordingDelivery(), settings=FAST, seed=2,
        ))
        assert result.status == RunStatus.DONE
        assert log.last.count == 5
