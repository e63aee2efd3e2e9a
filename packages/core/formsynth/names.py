"""Synthetic personal data: respondent names, email addresses and phone numbers.

NOTE: The name lists here are not sourced from any registry. They are
synthetic placeholders chosen to look natural on Indian survey forms.
"""

import logging
import random
import re
from typing import List, Optional, Sequence

from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)

DEFAULT_NAME = "Auto User"

EMAIL_DOMAINS = ["gmail.com", "yahoo.com", "outlook.com", "hotmail.com"]

PHONE_PREFIXES = "9876"

AUTO_FIRST_NAMES = ["Aarav", "Priya", "Rahul", "Sneha", "Vikram", "Anjali", "Rohan", "Kavita", "Amit", "Divya"]
AUTO_LAST_NAMES = ["Sharma", "Verma", "Patel", "Singh", "Kumar", "Gupta", "Reddy", "Das", "Shah", "Mehta"]

INDIAN_FIRST_NAMES = [
    # Male
    "Aarav", "Vihaan", "Aditya", "Sai", "Arjun", "Reyansh", "Muhammad", "Rohan", "Krishna", "Ishaan",
    "Shaurya", "Atharv", "Kabir", "Aryan", "Advik", "Vivaan", "Dhruv", "Ayaan", "Ansh", "Laksh",
    "Dev", "Rudra", "Shiv", "Parth", "Viraj", "Aarush", "Ayush", "Samarth", "Siddharth", "Kunal",
    # Female
    "Aadya", "Diya", "Saanvi", "Ananya", "Myra", "Kiara", "Pari", "Fatima", "Aisha", "Zara",
    "Riya", "Kavya", "Aditi", "Ira", "Anika", "Prisha", "Amaira", "Ahana", "Navya", "Shanaya",
    "Meera", "Ishita", "Sneha", "Nisha", "Pooja", "Neha", "Kritika", "Anjali", "Tanvi", "Roshni",
]

INDIAN_LAST_NAMES = [
    "Sharma", "Verma", "Gupta", "Malhotra", "Singh", "Kumar", "Patel", "Reddy", "Mehta", "Joshi",
    "Agarwal", "Trivedi", "Iyer", "Nair", "Khan", "Ahmed", "Ali", "Chopra", "Kapoor", "Saxena",
    "Bhatia", "Jain", "Mishra", "Pandey", "Das", "Roy", "Banerjee", "Chatterjee", "Sinha", "Yadav",
    "Chaudhary", "Desai", "Dutta", "Ghosh", "Rao", "Menon", "Pillai", "Kulkarni", "Patil", "Deshmukh",
]

NAME_SOURCES = ("auto", "indian", "custom")


def _compose_names(count: int, first: Sequence[str], last: Sequence[str], rng: random.Random) -> List[str]:
    return [f"{rng.choice(first)} {rng.choice(last)}" for _ in range(count)]


def parse_name_list(raw: Optional[str]) -> List[str]:
    """Split a comma-separated list of names, dropping blanks."""
    if not raw:
        return []
    return [name.strip() for name in raw.split(",") if name.strip()]


def generate_names(
    count: int,
    source: str = "auto",
    custom: Optional[Sequence[str]] = None,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Build the names pool for a run.

    Args:
        count: Number of names wanted (ignored for ``custom``)
        source: "auto", "indian" or "custom"
        custom: Operator-supplied names for the ``custom`` source
        rng: Random source

    Returns:
        List of full names; may be empty for an empty custom list
    """
    rng = rng or random.Random()
    if count < 0:
        raise ConfigurationError(f"Name count must be non-negative, got {count}")
    if source == "auto":
        return _compose_names(count, AUTO_FIRST_NAMES, AUTO_LAST_NAMES, rng)
    if source == "indian":
        return _compose_names(count, INDIAN_FIRST_NAMES, INDIAN_LAST_NAMES, rng)
    if source == "custom":
        names = [n.strip() for n in (custom or []) if n and n.strip()]
        if not names:
            logger.warning(f"Custom name source is empty; rows will use {DEFAULT_NAME!r}")
        return names
    raise ConfigurationError(f"Unknown name source {source!r}; expected one of {', '.join(NAME_SOURCES)}")


def synthesize_email(name: str, rng: random.Random) -> str:
    """Derive a plausible address from a name: ``first.last42@domain``."""
    local = re.sub(r"\s+", ".", (name or DEFAULT_NAME).strip().lower())
    local = re.sub(r"[^a-z0-9._]", "", local).strip(".") or "user"
    return f"{local}{rng.randrange(99)}@{rng.choice(EMAIL_DOMAINS)}"


def synthesize_phone(rng: random.Random) -> str:
    """Ten-digit Indian mobile number starting with 9, 8, 7 or 6."""
    return rng.choice(PHONE_PREFIXES) + "".join(str(rng.randrange(10)) for _ in range(9))
