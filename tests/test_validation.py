"""
Tests for recipe_core/validation.py

Every validator returns None for valid input and a reason string otherwise.
"""

import math

import pytest

from recipe_core.validation import (
    clean_title,
    count_sentences,
    sanitize_title,
    validate_embedding,
    validate_rewritten_instructions,
    validate_summary,
    validate_title,
)


class TestValidateSummary:

    def test_valid_summary(self, good_summary):
        assert validate_summary(good_summary) is None

    def test_none_fails(self):
        assert validate_summary(None) == "Summary is null"

    def test_too_short(self):
        assert "too short" in validate_summary("Fry the tofu.")

    def test_too_long(self):
        assert "too long" in validate_summary("word " * 120)

    def test_placeholder_text(self):
        text = "Lorem ipsum dolor sit amet, consectetur adipiscing elit, sed do eiusmod."
        assert "placeholder" in validate_summary(text)

    def test_too_few_words(self):
        # Long enough in characters but only five words
        text = "Supercalifragilistic extraordinarily-complicated tofu-and-noodle preparations everywhere"
        assert "too few words" in validate_summary(text)


class TestValidateRewrittenInstructions:

    def test_valid_instructions(self, good_instructions):
        assert validate_rewritten_instructions(good_instructions) is None

    def test_exactly_100_chars_fails(self):
        text = ("Stir it. Cook it. Serve it. " * 5)[:100]
        assert "too short" in validate_rewritten_instructions(text)

    def test_too_few_sentences(self):
        text = "Heat the oil in a large pan and fry the tofu until it turns golden on every side " \
               "then add the sauce and stir well. Serve."
        assert "too few sentences" in validate_rewritten_instructions(text)

    def test_contains_null(self, good_instructions):
        text = good_instructions + " Garnish with null."
        assert "null" in validate_rewritten_instructions(text)

    def test_none_fails(self):
        assert validate_rewritten_instructions(None) is not None

    @pytest.mark.parametrize("text, expected", [
        ("Fry. Stir. Serve.", 3),
        ("Fry. . Serve", 3),
        ("Fry. Serve...", 2),
        ("...", 0),
    ])
    def test_count_sentences(self, text, expected):
        """Blank segments between periods count; trailing empty ones do not."""
        assert count_sentences(text) == expected

    def test_blank_segment_counts_as_sentence(self):
        text = "Heat the oil in a large pan and fry the tofu until it turns golden on every side " \
               "then add the sauce and stir well. . Serve."
        assert validate_rewritten_instructions(text) is None


class TestValidateEmbedding:

    def test_valid_768_finite(self):
        assert validate_embedding([0.5] * 768) is None

    def test_wrong_length(self):
        assert "length is incorrect" in validate_embedding([0.5] * 767)

    def test_nan_value(self):
        vector = [0.5] * 768
        vector[10] = math.nan
        assert "index 10" in validate_embedding(vector)

    def test_inf_value(self):
        vector = [0.5] * 768
        vector[-1] = math.inf
        assert validate_embedding(vector) is not None

    def test_none_fails(self):
        assert validate_embedding(None) == "Embedding is null"


class TestValidateTitle:

    def test_valid_title(self, good_title):
        assert validate_title(good_title) is None

    def test_allowed_punctuation(self):
        assert validate_title("Mac & Cheese - Grandma's, Baked") is None

    @pytest.mark.parametrize("title", ["", "   ", None])
    def test_blank_fails(self, title):
        assert validate_title(title) == "Title is empty or null"

    def test_too_short(self):
        assert "too short" in validate_title("Pie")

    def test_too_long(self):
        assert "too long" in validate_title("A" * 101)

    def test_lowercase_start(self):
        assert "uppercase" in validate_title("spicy tofu")

    def test_disallowed_characters(self):
        assert "disallowed" in validate_title("Tofu: The Remix!")

    def test_placeholder_terms(self):
        assert "placeholder" in validate_title("Null Pointer Pie")


class TestTitleHelpers:

    def test_clean_title_strips_noise(self):
        assert clean_title('"Crème Brûlée: Classic (v2)"') == "Creme Brulee - Classic"

    def test_clean_title_collapses_whitespace(self):
        assert clean_title("  Beef   Stew  ") == "Beef Stew"

    def test_sanitize_title_removes_disallowed(self):
        assert sanitize_title("spicy tofu!! (v2) #1") == "spicy tofu v2 1"
