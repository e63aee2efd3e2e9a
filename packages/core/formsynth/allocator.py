"""
Quota allocation using the largest remainder (Hare quota) method.

Turns an option weight vector into exact integer counts for N responses,
then expands the counts into a shuffled deck with one entry per row.
"""

import logging
import math
import random
from typing import Dict, List, Optional, Sequence

from .exceptions import SchemaError
from .models import FormQuestion


logger = logging.getLogger(__name__)

FALLBACK_TOTAL_WEIGHT = 100.0


def allocate_counts(weights: Sequence[float], n: int) -> List[int]:
    """
    Apportion ``n`` units across ``weights`` with the largest remainder method.

    Weights need not sum to 100; they are normalised against their total.
    When every weight is zero the options are treated as equally likely.
    Ties between equal fractional parts go to the earlier option.

    Args:
        weights: Non-negative weight per option
        n: Number of units to distribute

    Returns:
        Integer count per option, summing exactly to ``n``
    """
    if n < 0:
        raise ValueError(f"Target count must be non-negative, got {n}")
    if not weights:
        return []
    if any(w < 0 or math.isnan(w) for w in weights):
        raise ValueError(f"Weights must be non-negative numbers: {list(weights)}")
    if n == 0:
        return [0] * len(weights)

    total_weight = float(sum(weights))
    if total_weight == 0:
        logger.debug("All weights are zero; using uniform allocation")
        weights = [1.0] * len(weights)
        total_weight = float(len(weights))

    exact = [(w / total_weight) * n for w in weights]
    counts = [math.floor(x) for x in exact]
    fractions = [x - c for x, c in zip(exact, counts)]

    remainder = n - sum(counts)
    # sorted() is stable, so equal fractions keep option order
    by_fraction = sorted(range(len(weights)), key=lambda i: fractions[i], reverse=True)
    for i in by_fraction[:remainder]:
        counts[i] += 1

    return counts


def build_deck(values: Sequence[str], counts: Sequence[int],
               rng: Optional[random.Random] = None) -> List[str]:
    """Repeat each value by its count, in option order, then shuffle uniformly."""
    if len(values) != len(counts):
        raise ValueError("values and counts must have the same length")
    rng = rng or random.Random()
    deck: List[str] = []
    for value, count in zip(values, counts):
        deck.extend([value] * count)
    rng.shuffle(deck)
    return deck


class QuotaAllocator:
    """
    Builds one deck per weighted question.

    Example:
        allocator = QuotaAllocator(rng=random.Random(7))
        decks = allocator.allocate_all(analysis.questions, 100)
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def counts_for(self, question: FormQuestion, n: int) -> Dict[str, int]:
        """Pre-shuffle count per option value."""
        counts = allocate_counts([opt.weight for opt in question.options], n)
        result: Dict[str, int] = {}
        for opt, count in zip(question.options, counts):
            result[opt.value] = result.get(opt.value, 0) + count
        return result

    def allocate(self, question: FormQuestion, n: int) -> List[str]:
        """Return the shuffled deck of length ``n`` for a single question."""
        if not question.options:
            raise SchemaError(f"Question {question.id!r} has no options to allocate", question_id=question.id)
        counts = allocate_counts([opt.weight for opt in question.options], n)
        return build_deck(question.option_values, counts, self.rng)

    def allocate_all(self, questions: Sequence[FormQuestion], n: int) -> Dict[str, List[str]]:
        """Build decks for every question that has options, keyed by question id."""
        decks: Dict[str, List[str]] = {}
        for question in questions:
            if not question.options:
                continue
            decks[question.id] = self.allocate(question, n)
        logger.debug(f"Allocated {len(decks)} decks of length {n}")
        return decks
