"""
Demographic alignment of allocated decks.

Re-orders the decks of related demographic questions (age, profession,
education, income) so that each row reads as a plausible person, while
keeping every deck a permutation of itself: the marginal quota of each
question is untouched.

Dependency order of the alignment:
    Anchor (first of age → profession → education → income) is fixed
    Remaining fields are assigned row by row against the anchor and
    every field already assigned for that row
"""

import logging
import random
import re
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .classifiers import DemographicRole, classify_demographic
from .exceptions import SchemaError
from .models import FormQuestion


logger = logging.getLogger(__name__)

ANCHOR_PRIORITY = (
    DemographicRole.AGE,
    DemographicRole.PROFESSION,
    DemographicRole.EDUCATION,
    DemographicRole.INCOME,
)
ALIGNED_ROLES = frozenset(ANCHOR_PRIORITY)


class Profession:
    STUDENT = "student"
    RETIRED = "retired"
    UNEMPLOYED = "unemployed"
    BUSINESS = "business"
    EMPLOYED = "employed"
    OTHER = "other"


WORKING = frozenset({Profession.EMPLOYED, Profession.BUSINESS})

UNKNOWN_INCOME = -1
DEFAULT_AGE = 30
DEFAULT_EDUCATION = 12

PENALTY = 10000.0
SMALL_PENALTY = 2000.0
BONUS = 5000.0
MEDIUM_BONUS = 3000.0
SMALL_BONUS = 1000.0


# =============================================================================
# SEMANTIC EXTRACTION
# =============================================================================

_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def extract_age(text: str) -> int:
    """
    Map an age option to a representative age.

    "Under 18" → 15, "18-25" → 21, "25-34" → 29, "55+" → 60,
    anything unparseable → 30.
    """
    t = (text or "").lower()
    numbers = [int(float(n)) for n in _NUMBER.findall(t)]
    if re.search(r"\b(under|below|less than|upto|up to)\b|<", t):
        return 15
    if len(numbers) >= 2:
        return (numbers[0] + numbers[1]) // 2
    if len(numbers) == 1:
        if re.search(r"\+|\b(above|over|older|more)\b", t):
            return numbers[0] + 5
        return numbers[0]
    if "teen" in t:
        return 15
    if "senior" in t or "elderly" in t:
        return 65
    return DEFAULT_AGE


_PROFESSION_KEYWORDS = (
    (Profession.STUDENT, ("student", "studying", "pupil")),
    (Profession.RETIRED, ("retired", "retiree", "pension")),
    (Profession.UNEMPLOYED, ("unemployed", "jobless", "not working", "homemaker", "housewife",
                             "house wife", "looking for")),
    (Profession.BUSINESS, ("business", "self-employed", "self employed", "entrepreneur", "owner",
                           "freelanc", "shop")),
    # "School Teacher" is a job, a bare "School" is a student
    (Profession.EMPLOYED, ("teacher", "professor", "lecturer", "principal", "faculty", "staff")),
    (Profession.STUDENT, ("school", "college")),
    (Profession.EMPLOYED, ("employed", "employee", "job", "service", "salaried", "private",
                           "government", "govt", "engineer", "doctor", "professional",
                           "working", "manager")),
)


def extract_profession(text: str) -> str:
    """Map a profession option to a coarse category."""
    t = (text or "").lower()
    for category, keywords in _PROFESSION_KEYWORDS:
        if any(k in t for k in keywords):
            return category
    return Profession.OTHER


_INCOME_TIERS = ((25000, 15000), (50000, 35000), (100000, 70000))


_INCOME_AMOUNT = re.compile(r"(\d+(?:\.\d+)?)\s*(lakhs?|lacs?|lpa|l|k|m)?\b")
_INCOME_UNIT = re.compile(r"(?:(?<=\d)|(?<=\s)|^)(lakhs?|lacs?|lpa|l|k|m)\b")


def _income_amount(text: str) -> Optional[float]:
    """Lower bound of the option; a range's trailing unit ("5-10 LPA") applies to it."""
    t = text.replace(",", "")
    match = _INCOME_AMOUNT.search(t)
    if not match:
        return None
    amount = float(match.group(1))
    unit = match.group(2)
    if unit is None:
        trailing = _INCOME_UNIT.search(t, match.end())
        unit = trailing.group(1) if trailing else ""
    if unit.startswith(("lakh", "lac")) or unit in ("lpa", "l"):
        amount *= 100000
    elif unit == "k":
        amount *= 1000
    elif unit == "m":
        amount *= 1000000
    return amount


def extract_income(text: str) -> int:
    """
    Map an income option to a coarse tier: 0, 15000, 35000, 70000 or 150000.

    Returns -1 when nothing can be inferred.
    """
    t = (text or "").lower()
    if re.search(r"\b(no income|none|nil|not earning|zero|dependent)\b", t):
        return 0
    amount = _income_amount(t)
    if amount is not None:
        if amount <= 0:
            return 0
        for ceiling, tier in _INCOME_TIERS:
            if amount < ceiling:
                return tier
        return 150000
    if re.search(r"\blow\b", t):
        return 15000
    if re.search(r"\b(middle|medium|average)\b", t):
        return 35000
    if re.search(r"\b(upper|high)\b", t):
        return 70000
    return UNKNOWN_INCOME


def extract_education(text: str) -> int:
    """Map an education option to a level: 10 school, 15 bachelor, 18 postgraduate, 12 unknown."""
    t = (text or "").lower()
    if re.search(r"post ?grad|master|\bphd\b|ph\.d|doctor|\bmba\b|m\.?\s?tech|m\.?\s?sc|\bm\.?a\b|\bmca\b", t):
        return 18
    if re.search(r"bachelor|graduat|degree|b\.?\s?tech|b\.?\s?sc|\bb\.?a\b|\bbca\b|\bbe\b|college|undergrad", t):
        return 15
    if re.search(r"school|secondary|10th|12th|matric|diploma|primary|ssc|hsc", t):
        return 10
    return DEFAULT_EDUCATION


EXTRACTORS: Dict[DemographicRole, Callable[[str], object]] = {
    DemographicRole.AGE: extract_age,
    DemographicRole.PROFESSION: extract_profession,
    DemographicRole.INCOME: extract_income,
    DemographicRole.EDUCATION: extract_education,
}


# =============================================================================
# PLAUSIBILITY SCORING
# =============================================================================

@dataclass
class Profile:
    """Semantic values of one row; None marks a field not (yet) assigned."""
    age: Optional[int] = None
    profession: Optional[str] = None
    income: Optional[int] = None
    education: Optional[int] = None

    def with_value(self, role: DemographicRole, value) -> "Profile":
        data = dict(self.__dict__)
        data[role.value] = value
        return Profile(**data)

    @property
    def has_income(self) -> bool:
        return self.income is not None and self.income != UNKNOWN_INCOME


@dataclass
class PlausibilityRule:
    """Additive rule: ``weight`` is added when ``applies(profile)`` is true."""
    name: str
    weight: float
    applies: Callable[[Profile], bool]


def _age(p: Profile) -> bool:
    return p.age is not None


def _prof(p: Profile) -> bool:
    return p.profession is not None


def _edu(p: Profile) -> bool:
    return p.education is not None


DEFAULT_RULES: List[PlausibilityRule] = [
    # age × profession
    PlausibilityRule("minor_working", -PENALTY,
                     lambda p: _age(p) and _prof(p) and p.age < 18 and p.profession in WORKING),
    PlausibilityRule("minor_student", BONUS,
                     lambda p: _age(p) and p.age < 18 and p.profession == Profession.STUDENT),
    PlausibilityRule("senior_retired", BONUS,
                     lambda p: _age(p) and p.age > 60 and p.profession == Profession.RETIRED),
    PlausibilityRule("young_retired", -PENALTY,
                     lambda p: _age(p) and p.age < 40 and p.profession == Profession.RETIRED),
    PlausibilityRule("mature_student", -PENALTY,
                     lambda p: _age(p) and p.age >= 35 and p.profession == Profession.STUDENT),
    # age × income
    PlausibilityRule("minor_high_income", -PENALTY,
                     lambda p: _age(p) and p.has_income and p.age < 18 and p.income > 20000),
    PlausibilityRule("minor_no_income", MEDIUM_BONUS,
                     lambda p: _age(p) and p.has_income and p.age < 18 and p.income == 0),
    PlausibilityRule("adult_no_income", -SMALL_PENALTY,
                     lambda p: _age(p) and p.has_income and p.age > 30 and p.income == 0),
    PlausibilityRule("prime_age_earning", SMALL_BONUS,
                     lambda p: _age(p) and p.has_income and 25 <= p.age <= 45 and p.income > 20000),
    # profession × income
    PlausibilityRule("student_high_income", -PENALTY,
                     lambda p: p.has_income and p.profession == Profession.STUDENT and p.income > 30000),
    PlausibilityRule("student_no_income", MEDIUM_BONUS,
                     lambda p: p.has_income and p.profession == Profession.STUDENT and p.income == 0),
    PlausibilityRule("unemployed_income", -PENALTY,
                     lambda p: p.has_income and p.profession == Profession.UNEMPLOYED and p.income > 10000),
    PlausibilityRule("working_income", MEDIUM_BONUS,
                     lambda p: p.has_income and p.profession in WORKING and p.income > 0),
    PlausibilityRule("working_no_income", -PENALTY,
                     lambda p: p.has_income and p.profession in WORKING and p.income == 0),
    # age × education
    PlausibilityRule("minor_higher_education", -PENALTY,
                     lambda p: _age(p) and _edu(p) and p.age < 18 and p.education > 12),
    PlausibilityRule("young_postgraduate", -PENALTY,
                     lambda p: _age(p) and _edu(p) and p.age < 21 and p.education > 15),
    PlausibilityRule("adult_educated", SMALL_BONUS,
                     lambda p: _age(p) and _edu(p) and p.age > 24 and p.education > 12),
    # profession × education
    PlausibilityRule("student_postgraduate", -SMALL_PENALTY,
                     lambda p: _edu(p) and p.profession == Profession.STUDENT and p.education > 15),
    PlausibilityRule("unemployed_postgraduate", -SMALL_PENALTY,
                     lambda p: _edu(p) and p.profession == Profession.UNEMPLOYED and p.education > 15),
]


class ScoringStrategy(ABC):
    """Scores how plausible a (partial) demographic profile is."""

    @abstractmethod
    def score(self, profile: Profile) -> float:
        """Larger is more plausible."""
        pass

    def violations(self, profile: Profile) -> List[str]:
        """Names of the penalties a profile incurs; empty by default."""
        return []


class RuleTableScorer(ScoringStrategy):
    """Additive scorer over a table of :class:`PlausibilityRule`."""

    def __init__(self, rules: Optional[Sequence[PlausibilityRule]] = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def score(self, profile: Profile) -> float:
        return sum(rule.weight for rule in self.rules if rule.applies(profile))

    def violations(self, profile: Profile) -> List[str]:
        return [rule.name for rule in self.rules if rule.weight <= -PENALTY and rule.applies(profile)]


# =============================================================================
# ALIGNER
# =============================================================================

class DemographicAligner:
    """
    Greedy row-by-row alignment of demographic decks.

    For every row, each non-anchor field takes the still-unused option that
    scores best against the anchor and the fields already placed for that
    row. A uniform jitter in [0, 1) is added to every candidate's score so
    equal scores resolve randomly instead of by pool order.
    """

    def __init__(
        self,
        scorer: Optional[ScoringStrategy] = None,
        rng: Optional[random.Random] = None,
        classifier: Callable[[FormQuestion], Optional[DemographicRole]] = classify_demographic,
    ):
        self.scorer = scorer or RuleTableScorer()
        self.rng = rng or random.Random()
        self.classifier = classifier

    def detect_roles(self, questions: Sequence[FormQuestion],
                     decks: Dict[str, List[str]]) -> Dict[DemographicRole, str]:
        """
        Map each demographic role to the id of the first question holding it.

        Only questions that own a deck are considered.
        """
        roles: Dict[DemographicRole, str] = {}
        for question in questions:
            if question.id not in decks:
                continue
            role = self.classifier(question)
            if role is None or role in roles:
                continue
            roles[role] = question.id
        return roles

    @staticmethod
    def select_anchor(roles: Dict[DemographicRole, str]) -> Optional[DemographicRole]:
        for role in ANCHOR_PRIORITY:
            if role in roles:
                return role
        return None

    def _profile_at(self, row: int, assigned: Dict[DemographicRole, List[str]]) -> Profile:
        profile = Profile()
        for role, deck in assigned.items():
            profile = profile.with_value(role, EXTRACTORS[role](deck[row]))
        return profile

    def _align_field(self, role: DemographicRole, deck: List[str],
                     assigned: Dict[DemographicRole, List[str]]) -> List[str]:
        pool: "OrderedDict[str, int]" = OrderedDict()
        for value in deck:
            pool[value] = pool.get(value, 0) + 1
        semantics = {value: EXTRACTORS[role](value) for value in pool}

        aligned: List[str] = []
        for row in range(len(deck)):
            context = self._profile_at(row, assigned)
            best_value = None
            best_score = float("-inf")
            for value in pool:
                score = self.scorer.score(context.with_value(role, semantics[value])) + self.rng.random()
                if score > best_score:
                    best_score = score
                    best_value = value
            aligned.append(best_value)
            pool[best_value] -= 1
            if pool[best_value] == 0:
                del pool[best_value]
        return aligned

    def align(self, questions: Sequence[FormQuestion],
              decks: Dict[str, List[str]]) -> Dict[str, List[str]]:
        """
        Return a new deck mapping with demographic decks re-ordered.

        Non-demographic decks (and gender) are passed through unchanged.
        """
        aligned = dict(decks)
        roles = self.detect_roles(questions, decks)
        anchor = self.select_anchor(roles)
        participants = [role for role in ANCHOR_PRIORITY if role in roles]
        if anchor is None or len(participants) < 2:
            logger.debug(f"Skipping alignment; demographic roles found: {sorted(r.value for r in roles)}")
            return aligned

        n = len(decks[roles[anchor]])
        for role in participants:
            if len(decks[roles[role]]) != n:
                raise SchemaError(
                    f"Deck for {role.value} question {roles[role]!r} has length "
                    f"{len(decks[roles[role]])}, expected {n}",
                    question_id=roles[role],
                )

        assigned: Dict[DemographicRole, List[str]] = {anchor: list(decks[roles[anchor]])}
        for role in participants:
            if role == anchor:
                continue
            assigned[role] = self._align_field(role, decks[roles[role]], assigned)

        for role, deck in assigned.items():
            aligned[roles[role]] = deck
        logger.info(
            f"Aligned {len(assigned)} demographic fields across {n} rows "
            f"(anchor: {anchor.value})"
        )
        return aligned
