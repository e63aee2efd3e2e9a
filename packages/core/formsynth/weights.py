"""
Statistical default weights for unweighted questions.

Assigns option weights from a small table of typical survey answer
patterns (demographics, rating scales, yes/no) so that a freshly scraped
form can be run without the operator weighting every option.
"""

import logging
from typing import Dict, List, Sequence

from .models import FormAnalysis, FormOption, FormQuestion


logger = logging.getLogger(__name__)

DEMOGRAPHIC_PATTERNS: Dict[str, List[int]] = {
    "AGE": [5, 15, 30, 25, 15, 10],          # Young adults peak
    "YEAR": [5, 10, 40, 30, 10, 5],          # Recent years weighted
    "SATISFACTION": [5, 10, 15, 40, 30],     # Positive bias
    "RATE": [5, 5, 20, 40, 30],              # High ratings weighted
    "LIKELY": [10, 10, 20, 30, 30],
    "INCOME": [15, 25, 30, 20, 10],          # Middle-income majority
    "EDUCATION": [5, 20, 45, 20, 10],        # Bachelor's degree peak
    "GENDER": [48, 48, 4],
}

BELL_CURVES: Dict[int, List[int]] = {
    5: [10, 20, 40, 20, 10],
    4: [15, 35, 35, 15],
    3: [25, 50, 25],
}

YES_NO = [60, 40]
_BINARY_WORDS = ("yes", "no", "true", "false")
_MINOR_GENDER_WORDS = ("prefer", "say", "other")


def _fix_total(weights: List[int]) -> List[int]:
    """Push any rounding difference onto the last option so the total is 100."""
    if weights:
        weights[-1] += 100 - sum(weights)
    return weights


def _gender_weights(options: Sequence[str]) -> List[int]:
    raw = [2 if any(w in opt.lower() for w in _MINOR_GENDER_WORDS) else 49 for opt in options]
    total = sum(raw)
    return _fix_total([round(w / total * 100) for w in raw])


def uniform_weights(count: int) -> List[int]:
    """Equal integer split with the remainder on the last option."""
    if count <= 0:
        return []
    chunk = 100 // count
    return _fix_total([chunk] * count)


def suggest_weights(title: str, options: Sequence[str]) -> List[int]:
    """
    Suggest integer percentage weights for a question's options.

    Args:
        title: Question title
        options: Option texts, in form order

    Returns:
        One weight per option, summing to 100 (empty for no options)
    """
    count = len(options)
    if count == 0:
        return []
    text = (title or "").upper()

    if "GENDER" in text or "SEX" in text:
        return _gender_weights(options)

    if count == 2 and any(k in options[0].lower() for k in _BINARY_WORDS):
        return list(YES_NO)

    for key, pattern in DEMOGRAPHIC_PATTERNS.items():
        if key in text:
            if len(pattern) == count:
                return _fix_total(list(pattern))
            break

    if count in BELL_CURVES:
        return list(BELL_CURVES[count])
    return uniform_weights(count)


def needs_weights(question: FormQuestion) -> bool:
    return bool(question.options) and all(opt.weight == 0 for opt in question.options)


def apply_suggested_weights(analysis: FormAnalysis, overwrite: bool = False) -> FormAnalysis:
    """
    Return a copy of ``analysis`` with suggested weights filled in.

    Questions that already carry any non-zero weight are left alone unless
    ``overwrite`` is set.
    """
    questions = []
    filled = 0
    for question in analysis.questions:
        if question.options and (overwrite or needs_weights(question)):
            weights = suggest_weights(question.title, question.option_values)
            options = [FormOption(value=opt.value, weight=w) for opt, w in zip(question.options, weights)]
            question = question.model_copy(update={"options": options})
            filled += 1
        questions.append(question)
    logger.info(f"Applied suggested weights to {filled}/{len(analysis.questions)} questions")
    return analysis.model_copy(update={"questions": questions})
