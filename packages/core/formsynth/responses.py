"""Custom answer pools: operator overrides and externally generated JSON answers."""

import json
import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence, Union

from .exceptions import ConfigurationError
from .models import FormQuestion


logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def parse_override_pools(raw: Mapping[str, Union[str, Sequence[str]]]) -> Dict[str, List[str]]:
    """
    Turn operator overrides into answer pools.

    String values are split on commas; every answer is trimmed and blanks
    are dropped. Questions left with an empty pool are omitted.
    """
    pools: Dict[str, List[str]] = {}
    for question_id, value in raw.items():
        if value is None:
            continue
        items = value.split(",") if isinstance(value, str) else [str(v) for v in value]
        answers = [item.strip() for item in items if item and item.strip()]
        if answers:
            pools[question_id] = answers
    return pools


def _normalize_key(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


def match_question(key: str, questions: Sequence[FormQuestion]) -> Optional[FormQuestion]:
    """Fuzzy match: normalized key contained in the normalized title, or the reverse."""
    norm_key = _normalize_key(key)
    if not norm_key:
        return None
    for question in questions:
        norm_title = _normalize_key(question.title)
        if norm_title and (norm_key in norm_title or norm_title in norm_key):
            return question
    return None


def parse_answer_json(text: str, questions: Sequence[FormQuestion]) -> Dict[str, List[str]]:
    """
    Map a JSON object of ``{question title: [answers...]}`` onto question ids.

    Markdown code fences and trailing commas are tolerated. Keys that match
    no question are ignored; scalar values become single-answer pools.

    Raises:
        ConfigurationError: If the text is not a JSON object
    """
    clean = _FENCE.sub("", (text or "").strip())
    clean = _TRAILING_COMMA.sub(r"\1", clean)
    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid answer JSON: {e.msg} (line {e.lineno})") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Answer JSON must be an object keyed by question title")

    mapped: Dict[str, List[str]] = {}
    for key, values in data.items():
        question = match_question(key, questions)
        if question is None:
            logger.warning(f"No question matches answer key {key!r}; ignoring")
            continue
        if not isinstance(values, list):
            values = [values]
        mapped[question.id] = [str(v) for v in values]
    return mapped


def build_answer_prompt(form_title: str, form_description: str,
                        questions: Sequence[FormQuestion], count: int) -> str:
    """Prompt text asking a language model for ``count`` answers per text question."""
    text_questions = [q for q in questions if q.is_text]
    if not text_questions:
        return "No text-based questions found in this form. You don't need to generate custom text data."

    question_list = "\n".join(f"- {q.title}" for q in text_questions)
    context = f"CONTEXT: {form_description}\n" if form_description else ""
    return (
        f'I need to generate synthetic data for a Google Form titled "{form_title}".\n'
        f"{context}"
        f"Please generate EXACTLY {count} diverse and realistic responses for the following fields:\n\n"
        f"{question_list}\n\n"
        "CORE REQUIREMENTS:\n"
        "1. Return ONLY a valid JSON object. No conversation or explanation.\n"
        "2. The JSON keys MUST be the exact Question Titles listed above.\n"
        f"3. The values MUST be an ARRAY of {count} strings (one for each response).\n"
        "4. Focus on making the data look authentic. If it's a name, use a real full name. "
        "If it's a reason, make it a natural sentence.\n\n"
        "JSON STRUCTURE:\n"
        "{\n"
        '  "Question Title 1": ["Response 1", "Response 2", ...],\n'
        '  "Question Title 2": ["Response 1", "Response 2", ...]\n'
        "}"
    )
