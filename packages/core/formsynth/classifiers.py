"""
Heuristic question-intent classifiers.

Each predicate looks at a question's title (and, for demographic fields,
its option list) and decides whether the form is *asking for* that piece
of data. Titles that merely mention the subject ("How satisfied are you
with your salary?", "Which company name do you trust?") are rejected.

All predicates are pure functions.
"""

import re
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Union

from .models import FormOption, FormQuestion


MAX_PERSONAL_TITLE_LENGTH = 60


class DemographicRole(str, Enum):
    """Demographic fields understood by the aligner."""
    AGE = "age"
    PROFESSION = "profession"
    EDUCATION = "education"
    INCOME = "income"
    GENDER = "gender"


OptionsLike = Sequence[Union[str, FormOption]]

_CONTEXTUAL = re.compile(
    r"\b(about|regarding|opinion|think|feel|feelings|satisf\w*|aware\w*|importan\w*|impact\w*"
    r"|affect\w*|influenc\w*|recommend\w*|rate|rating|favou?rite|experience)\b"
)
_QUESTION_LEAD = re.compile(r"^(how|why|do|does|did|would|should|could|can|have|has|when|where)\b")

_NAME = re.compile(r"\b(full name|first name|last name|surname|your name|names?)\b")
_NAME_QUALIFIERS = re.compile(
    r"\b(company|organi[sz]ation|school|college|university|institute|institution|business|brand"
    r"|product|pet|father|mother|parent|guardian|spouse|friend|app|website|course|department"
    r"|project|team|city|village|town|district|street|hospital|shop|store|channel|book|movie|song)\b"
)
_EMAIL = re.compile(r"\b(e-?mail|gmail|mail id|email id|email address)\b")
_PHONE = re.compile(r"\b(phone|mobile|cell|whatsapp|telephone|contact number|contact no)\b")
_PHONE_QUALIFIERS = re.compile(
    r"\b(brand|company|model|app|apps|usage|use|using|screen|hours|time|spend|own|operating|os)\b"
)

_AGE_TITLE = re.compile(r"\b(age|age group|age range|how old|years old|year of birth|date of birth)\b")
_AGE_OPTION = re.compile(
    r"^\s*(under|below|above|over|less than|more than|upto|up to)?\s*\d{1,2}\s*"
    r"(\+|-|–|to|and above|and below|years|yrs|or (older|above|more|less)|$)"
)
_NON_AGE_UNITS = re.compile(r"(hour|hrs?\b|day|week|month|times|km|kg|%|rs\b|₹|\$|lakh|\bk\b|minute|\bmin\b)")

_PROFESSION_TITLE = re.compile(
    r"\b(occupation|profession|employment|job|work status|working status|current status"
    r"|what do you do|designation)\b"
)
_PROFESSION_OPTION = re.compile(
    r"\b(student|employed|unemployed|retired|business|self-employed|homemaker|housewife"
    r"|freelanc\w*|salaried|service|entrepreneur|professional)\b"
)

_INCOME_TITLE = re.compile(r"\b(income|salary|earning|earnings|ctc|stipend|pay scale|monthly pay)\b")
_INCOME_OPTION = re.compile(
    r"(₹|\brs\.?|\binr\b|\$|\busd\b|lakh|\blpa\b|\d+\s*k\b|\d{1,3}(,\d{3})+|\d{4,}|no income)"
)

_EDUCATION_TITLE = re.compile(
    r"\b(education|educational|qualification|degree|highest level|studying|academic)\b"
)
_EDUCATION_OPTION = re.compile(
    r"(high school|secondary|bachelor|master|\bphd\b|ph\.d|doctorate|graduate|post ?graduate"
    r"|diploma|undergraduate|b\.?\s?tech|m\.?\s?tech|b\.?\s?sc|m\.?\s?sc|\bmba\b|10th|12th|school)"
)

_GENDER_TITLE = re.compile(r"\b(gender|sex)\b")
_GENDER_OPTION = re.compile(r"\b(male|female|man|woman|men|women|non-binary)\b")


def _normalize(text: Optional[str]) -> str:
    return re.sub(r"\s+", " ", (text or "").strip().lower())


def _option_texts(options: Optional[OptionsLike]) -> List[str]:
    texts = []
    for opt in options or []:
        value = opt.value if isinstance(opt, FormOption) else opt
        texts.append(_normalize(str(value)))
    return texts


def _is_contextual(title: str) -> bool:
    return bool(_CONTEXTUAL.search(title))


def _asks_personal(title: str, pattern: re.Pattern) -> bool:
    if not title or len(title) > MAX_PERSONAL_TITLE_LENGTH:
        return False
    if not pattern.search(title):
        return False
    return not (_is_contextual(title) or _QUESTION_LEAD.search(title))


def _option_hits(options: Iterable[str], matcher) -> int:
    return sum(1 for opt in options if matcher(opt))


def _matches_demographic(title: str, options: Optional[OptionsLike], title_pattern: re.Pattern,
                         option_matcher, min_hits: int = 2) -> bool:
    title = _normalize(title)
    if _is_contextual(title):
        return False
    if title_pattern.search(title):
        return True
    texts = _option_texts(options)
    if not texts:
        return False
    hits = _option_hits(texts, option_matcher)
    return hits >= min_hits and hits * 2 >= len(texts)


def is_personal_name(title: str) -> bool:
    """True when the question asks for the respondent's own name."""
    t = _normalize(title)
    if _EMAIL.search(t) or _NAME_QUALIFIERS.search(t):
        return False
    return _asks_personal(t, _NAME)


def is_personal_email(title: str) -> bool:
    """True when the question asks for the respondent's email address."""
    return _asks_personal(_normalize(title), _EMAIL)


def is_phone_question(title: str) -> bool:
    """True when the question asks for a phone/mobile number."""
    t = _normalize(title)
    if _PHONE_QUALIFIERS.search(t):
        return False
    return _asks_personal(t, _PHONE)


def _looks_like_age_option(text: str) -> bool:
    if _NON_AGE_UNITS.search(text):
        return False
    return bool(_AGE_OPTION.search(text))


def is_age_question(title: str, options: Optional[OptionsLike] = None) -> bool:
    return _matches_demographic(title, options, _AGE_TITLE, _looks_like_age_option)


def is_prof_question(title: str, options: Optional[OptionsLike] = None) -> bool:
    return _matches_demographic(title, options, _PROFESSION_TITLE, _PROFESSION_OPTION.search)


def is_income_question(title: str, options: Optional[OptionsLike] = None) -> bool:
    return _matches_demographic(title, options, _INCOME_TITLE, _INCOME_OPTION.search)


def is_edu_question(title: str, options: Optional[OptionsLike] = None) -> bool:
    return _matches_demographic(title, options, _EDUCATION_TITLE, _EDUCATION_OPTION.search)


def is_gender_question(title: str, options: Optional[OptionsLike] = None) -> bool:
    return _matches_demographic(title, options, _GENDER_TITLE, _GENDER_OPTION.search)


_ROLE_PREDICATES = (
    (DemographicRole.AGE, is_age_question),
    (DemographicRole.PROFESSION, is_prof_question),
    (DemographicRole.EDUCATION, is_edu_question),
    (DemographicRole.INCOME, is_income_question),
    (DemographicRole.GENDER, is_gender_question),
)

_ROLE_TITLES = (
    (DemographicRole.AGE, _AGE_TITLE),
    (DemographicRole.PROFESSION, _PROFESSION_TITLE),
    (DemographicRole.EDUCATION, _EDUCATION_TITLE),
    (DemographicRole.INCOME, _INCOME_TITLE),
    (DemographicRole.GENDER, _GENDER_TITLE),
)


def classify_demographic(question: FormQuestion) -> Optional[DemographicRole]:
    """
    Return the demographic role of a choice question, or None.

    A title keyword match takes precedence over option-based detection so
    that e.g. an education question offering "Student" is not mistaken for
    a profession question.
    """
    if not question.options:
        return None
    title = _normalize(question.title)
    if _is_contextual(title):
        return None
    for role, pattern in _ROLE_TITLES:
        if pattern.search(title):
            return role
    for role, predicate in _ROLE_PREDICATES:
        if predicate(question.title, question.options):
            return role
    return None
