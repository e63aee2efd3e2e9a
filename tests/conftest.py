"""Test configuration for local imports and shared form fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
CORE_PATH = PROJECT_ROOT / "packages" / "core"

if str(CORE_PATH) not in sys.path:
    sys.path.insert(0, str(CORE_PATH))

from formsynth.models import FormAnalysis, FormQuestion  # noqa: E402


def make_question(qid, title, options=None, qtype="MULTIPLE_CHOICE", required=False, page=0, entry=None):
    """Build a FormQuestion from ``(value, weight)`` pairs."""
    return FormQuestion(
        id=qid,
        entry_id=entry or str(1000 + len(qid) * 100 + sum(ord(c) for c in qid)),
        title=title,
        type=qtype,
        options=[{"value": v, "weight": w} for v, w in (options or [])],
        required=required,
        page_index=page,
    )


@pytest.fixture
def survey_questions():
    """A small survey with demographic, checkbox and text questions."""
    return [
        make_question("name", "Full Name", qtype="SHORT_ANSWER", required=True, entry="1001"),
        make_question("age", "What is your age?", [("Under 18", 20), ("18-24", 30), ("25-34", 30), ("55+", 20)],
                      required=True, entry="1002"),
        make_question("job", "Occupation", [("Student", 40), ("Employed", 40), ("Retired", 20)],
                      entry="1003"),
        make_question("tools", "Which tools do you use?", [("Email", 60), ("Chat", 40)],
                      qtype="CHECKBOXES", entry="1004", page=1),
        make_question("feedback", "Any other comments", qtype="PARAGRAPH", entry="1005", page=1),
    ]


@pytest.fixture
def survey_analysis(survey_questions):
    return FormAnalysis(
        title="Tool Usage Survey",
        description="A short survey",
        questions=survey_questions,
        hidden_fields={"fvv": "1", "fbzx": "-123456"},
    )
