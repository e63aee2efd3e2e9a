"""Tests for synthetic names, emails and phone numbers."""

import random
import re

import pytest

from formsynth.exceptions import ConfigurationError
from formsynth.names import (
    EMAIL_DOMAINS,
    INDIAN_FIRST_NAMES,
    generate_names,
    parse_name_list,
    synthesize_email,
    synthesize_phone,
)


class TestGenerateNames:
    """Tests for generate_names."""

    def test_auto(self):
        names = generate_names(5, "auto", rng=random.Random(1))
        assert len(names) == 5
        assert all(len(n.split()) == 2 for n in names)

    def test_indian(self):
        names = generate_names(20, "indian", rng=random.Random(1))
        assert all(n.split()[0] in INDIAN_FIRST_NAMES for n in names)

    def test_custom(self):
        assert generate_names(0, "custom", custom=[" Asha Rao ", "", "Ravi"]) == ["Asha Rao", "Ravi"]

    def test_custom_empty(self):
        assert generate_names(10, "custom", custom=[]) == []

    def test_unknown_source(self):
        with pytest.raises(ConfigurationError):
            generate_names(3, "klingon")

    def test_negative_count(self):
        with pytest.raises(ConfigurationError):
            generate_names(-1)

    def test_parse_name_list(self):
        assert parse_name_list("Asha Rao, Ravi Iyer,, ") == ["Asha Rao", "Ravi Iyer"]
        assert parse_name_list(None) == []


class TestSynthesize:
    def test_email(self):
        email = synthesize_email("Asha Rao", random.Random(3))
        local, domain = email.split("@")
        assert re.fullmatch(r"asha\.rao\d{1,2}", local)
        assert domain in EMAIL_DOMAINS

    def test_email_strips_symbols(self):
        assert synthesize_email("D'Souza  Jr.", random.Random(0)).startswith("dsouza.jr")

    def test_phone(self):
        phone = synthesize_phone(random.Random(0))
        assert re.fullmatch(r"[6-9]\d{9}", phone)
