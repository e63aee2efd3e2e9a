"""
Payload compilation: resolves every question's value for every row.

Resolution order per question (first match wins):
    1. Custom override pool, cycled by row index
    2. Personal name (text questions) from the names pool
    3. Personal email derived from the row's name
    4. Phone number
    5. Deck value (checkboxes may gain a second selection)
    6. First option when the question has options but no deck
    7. Empty string
"""

import logging
import random
from typing import Callable, Dict, List, Optional, Sequence

from .classifiers import is_personal_email, is_personal_name, is_phone_question
from .exceptions import RowValidationError
from .models import (
    AnswerValue,
    CompiledBatch,
    FormQuestion,
    QuestionType,
    RowPayload,
)
from .names import DEFAULT_NAME, synthesize_email, synthesize_phone
from .settings import EngineSettings


logger = logging.getLogger(__name__)

EMAIL_FIELD = "emailAddress"


def is_empty_answer(value: AnswerValue) -> bool:
    if isinstance(value, list):
        return len(value) == 0 or all(not str(v).strip() for v in value)
    return not str(value or "").strip()


def page_history_for(questions: Sequence[FormQuestion]) -> str:
    """``"0,1,...,last"`` covering every page a question sits on."""
    last_page = max((q.page_index for q in questions), default=0)
    return ",".join(str(i) for i in range(last_page + 1))


class PayloadCompiler:
    """
    Builds one :class:`RowPayload` per row from aligned decks.

    Example:
        compiler = PayloadCompiler(questions, aligned, names=pool, rng=rng)
        batch = compiler.compile_all(100)
    """

    def __init__(
        self,
        questions: Sequence[FormQuestion],
        decks: Dict[str, List[str]],
        overrides: Optional[Dict[str, List[str]]] = None,
        names: Optional[Sequence[str]] = None,
        hidden_fields: Optional[Dict[str, str]] = None,
        settings: Optional[EngineSettings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.questions = list(questions)
        self.decks = decks
        self.overrides = {qid: list(pool) for qid, pool in (overrides or {}).items() if pool}
        self.names = list(names or [])
        self.hidden_fields = dict(hidden_fields or {})
        self.settings = settings or EngineSettings()
        self.rng = rng or random.Random()
        self.page_history = page_history_for(self.questions)

        # Classification is pure, so do it once per question
        self._personal: Dict[str, Optional[str]] = {q.id: self._classify_personal(q) for q in self.questions}

    @staticmethod
    def _classify_personal(question: FormQuestion) -> Optional[str]:
        if question.is_text and is_personal_name(question.title):
            return "name"
        if is_personal_email(question.title):
            return "email"
        if is_phone_question(question.title):
            return "phone"
        return None

    def name_for(self, row: int) -> str:
        if not self.names:
            return DEFAULT_NAME
        return self.names[row % len(self.names)]

    def _checkbox_value(self, question: FormQuestion, primary: str) -> List[str]:
        selection = [primary]
        if self.rng.random() < self.settings.checkbox_extra_probability:
            candidates = [
                opt.value for opt in question.options
                if opt.weight > self.settings.checkbox_extra_min_weight and opt.value != primary
            ]
            if candidates:
                selection.append(self.rng.choice(candidates))
        return selection

    def resolve_value(self, question: FormQuestion, row: int) -> AnswerValue:
        """Resolve the answer of one question for one row."""
        pool = self.overrides.get(question.id)
        if pool:
            return pool[row % len(pool)]

        personal = self._personal.get(question.id)
        if personal == "name":
            return self.name_for(row)
        if personal == "email":
            return synthesize_email(self.name_for(row), self.rng)
        if personal == "phone":
            return synthesize_phone(self.rng)

        deck = self.decks.get(question.id)
        if deck is not None and question.options:
            picked = deck[row] if row < len(deck) else None
            primary = picked or question.options[0].value
            if question.type == QuestionType.CHECKBOXES:
                return self._checkbox_value(question, primary)
            return primary

        if question.options:
            return question.options[0].value
        return ""

    def compile_row(self, row: int) -> RowPayload:
        """
        Build the payload for ``row``.

        Raises:
            RowValidationError: If a required question resolves to an empty value
        """
        answers: Dict[str, AnswerValue] = {}
        for question in self.questions:
            value = self.resolve_value(question, row)
            if question.required and is_empty_answer(value):
                raise RowValidationError(
                    f"Response #{row + 1}: required question {question.title!r} has no value",
                    row_index=row,
                    question_id=question.id,
                )
            if not is_empty_answer(value):
                answers[question.entry_id] = value

        if EMAIL_FIELD not in answers:
            answers[EMAIL_FIELD] = synthesize_email(self.name_for(row), self.rng)

        return RowPayload(
            row_index=row,
            answers=answers,
            hidden_fields=dict(self.hidden_fields),
            page_history=self.page_history,
        )

    def compile_all(self, n: int,
                    on_invalid: Optional[Callable[[RowValidationError], None]] = None) -> CompiledBatch:
        """Compile rows ``0..n-1``; invalid rows are recorded and skipped."""
        batch = CompiledBatch()
        for row in range(n):
            try:
                batch.payloads.append(self.compile_row(row))
            except RowValidationError as e:
                logger.warning(str(e))
                batch.invalid_rows[row] = str(e)
                if on_invalid is not None:
                    on_invalid(e)
        logger.info(f"Compiled {batch.valid_count}/{n} rows ({batch.invalid_count} invalid)")
        return batch
