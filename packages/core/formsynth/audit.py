"""Audit of a response plan before dispatch.

Checks two things:
1. Marginal fidelity: each deck's composition against its option weights
2. Joint plausibility: rows whose demographic combination still incurs a penalty
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .alignment import EXTRACTORS, Profile, RuleTableScorer, ScoringStrategy
from .classifiers import DemographicRole
from .models import FormQuestion


@dataclass
class MarginalDrift:
    """Realized deck composition vs. target weight shares for one question."""
    question_id: str
    title: str
    expected: Dict[str, float]
    observed: Dict[str, int]
    max_count_error: float

    @property
    def within_rounding(self) -> bool:
        return self.max_count_error < 1.0 + 1e-9


@dataclass
class PlanAudit:
    """Audit report for a plan."""
    target_count: int
    drifts: List[MarginalDrift] = field(default_factory=list)
    permutation_ok: bool = True
    implausible_rows: int = 0
    violations: Counter = field(default_factory=Counter)

    @property
    def is_exact(self) -> bool:
        return self.permutation_ok and all(d.within_rounding for d in self.drifts)

    def summary(self) -> str:
        """Generate human-readable summary."""
        lines = [
            "Plan Audit",
            "==========",
            f"Rows planned: {self.target_count}",
            f"Questions allocated: {len(self.drifts)}",
            f"Marginals exact: {'✓ YES' if self.is_exact else '✗ NO'}",
            f"Rows with implausible demographics: {self.implausible_rows}",
        ]
        worst = sorted(self.drifts, key=lambda d: d.max_count_error, reverse=True)[:5]
        if worst:
            lines.append("\nLargest count deviations:")
            for d in worst:
                lines.append(f"  [{d.question_id}] {d.title[:50]}: {d.max_count_error:.2f}")
        if self.violations:
            lines.append("\nPenalties:")
            for name, count in self.violations.most_common():
                lines.append(f"  {name}: {count}")
        return "\n".join(lines)


def marginal_drift(question: FormQuestion, deck: Sequence[str]) -> MarginalDrift:
    """Compare a deck's value counts with the counts its weights ask for."""
    n = len(deck)
    weights = np.array([opt.weight for opt in question.options], dtype=float)
    if weights.sum() == 0:
        weights = np.ones(len(weights))
    shares = weights / weights.sum()

    expected: Dict[str, float] = {}
    for opt, share in zip(question.options, shares):
        expected[opt.value] = expected.get(opt.value, 0.0) + float(share)

    counts = Counter(deck)
    values = list(expected)
    observed = np.array([counts.get(v, 0) for v in values], dtype=float)
    target = np.array([expected[v] * n for v in values])
    max_error = float(np.max(np.abs(observed - target))) if values else 0.0

    return MarginalDrift(
        question_id=question.id,
        title=question.title,
        expected=expected,
        observed={v: int(counts.get(v, 0)) for v in values},
        max_count_error=max_error,
    )


def audit_plan(
    questions: Sequence[FormQuestion],
    decks: Dict[str, List[str]],
    aligned: Dict[str, List[str]],
    roles: Dict[DemographicRole, str],
    scorer: Optional[ScoringStrategy] = None,
) -> PlanAudit:
    """Audit allocated decks against weights and aligned rows against the scorer."""
    scorer = scorer or RuleTableScorer()
    n = len(next(iter(decks.values()))) if decks else 0
    report = PlanAudit(target_count=n)

    for question in questions:
        if question.id in aligned:
            report.drifts.append(marginal_drift(question, aligned[question.id]))

    for question_id, deck in decks.items():
        if sorted(deck) != sorted(aligned.get(question_id, [])):
            report.permutation_ok = False

    scored = {role: qid for role, qid in roles.items() if role in EXTRACTORS}
    if len(scored) >= 2:
        for row in range(n):
            profile = Profile()
            for role, qid in scored.items():
                profile = profile.with_value(role, EXTRACTORS[role](aligned[qid][row]))
            hits = scorer.violations(profile)
            if hits:
                report.implausible_rows += 1
                report.violations.update(hits)

    return report
