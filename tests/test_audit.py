"""Tests for plan auditing."""

import random

from formsynth.audit import audit_plan, marginal_drift
from formsynth.classifiers import DemographicRole
from formsynth.engine import build_plan

from conftest import make_question


AGE_Q = make_question("age", "Age", [("Under 18", 50), ("25-34", 50)])
JOB_Q = make_question("job", "Occupation", [("Student", 50), ("Employed", 50)])
ROLES = {DemographicRole.AGE: "age", DemographicRole.PROFESSION: "job"}


class TestMarginalDrift:
    def test_exact_deck(self):
        question = make_question("q", "Pick", [("A", 60), ("B", 40)])
        drift = marginal_drift(question, ["A", "B", "A", "B", "A"])
        assert drift.observed == {"A": 3, "B": 2}
        assert drift.within_rounding

    def test_skewed_deck(self):
        question = make_question("q", "Pick", [("A", 60), ("B", 40)])
        drift = marginal_drift(question, ["A"] * 5)
        assert drift.max_count_error == 2.0
        assert not drift.within_rounding


class TestAuditPlan:
    """Tests for audit_plan."""

    def test_built_plan_is_exact(self, survey_questions):
        plan = build_plan(survey_questions, 37, rng=random.Random(2))
        report = audit_plan(survey_questions, plan.decks, plan.aligned, plan.roles)
        assert report.is_exact
        assert report.target_count == 37
        assert "Marginals exact: ✓ YES" in report.summary()

    def test_implausible_rows_counted(self):
        """Test rows incurring a penalty are counted by rule name."""
        decks = {"age": ["Under 18", "25-34"], "job": ["Employed", "Student"]}
        report = audit_plan([AGE_Q, JOB_Q], decks, decks, ROLES)
        assert report.implausible_rows == 1
        assert report.violations["minor_working"] == 1
        assert "minor_working: 1" in report.summary()

    def test_broken_permutation_detected(self):
        decks = {"age": ["Under 18", "25-34"], "job": ["Student", "Employed"]}
        aligned = {"age": ["Under 18", "25-34"], "job": ["Student", "Student"]}
        report = audit_plan([AGE_Q, JOB_Q], decks, aligned, ROLES)
        assert not report.permutation_ok
        assert not report.is_exact
