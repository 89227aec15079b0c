"""
Recipe Core - Quality Gates for Generated Content

Pure checks run by the enrichment pipeline on every LLM output before it
is allowed anywhere near the recipe table.

Each validator returns None when the value passes, otherwise a short
human-readable reason. The pipeline turns a reason into a failure record.
"""

import math
import re
import unicodedata
from typing import Optional, Sequence

from recipe_core.config import EMBEDDING_DIMENSION

SUMMARY_MIN_LENGTH = 40
SUMMARY_MAX_LENGTH = 500
SUMMARY_MIN_WORDS = 8

INSTRUCTIONS_MIN_LENGTH = 100
INSTRUCTIONS_MIN_SENTENCES = 3

TITLE_MIN_LENGTH = 4
TITLE_MAX_LENGTH = 100

_TITLE_DISALLOWED = re.compile(r"[^a-zA-Z0-9\s\-,'&]")
_PARENTHESISED = re.compile(r"\s*\([^)]*\)")
_SEPARATOR_RUNS = re.compile(r"[:;|=>]+")
_MULTI_SPACE = re.compile(r"\s{2,}")


def validate_summary(summary: Optional[str]) -> Optional[str]:
    """Check a generated summary: 40-500 chars, at least 8 words, no filler text."""
    if summary is None:
        return "Summary is null"
    if len(summary) < SUMMARY_MIN_LENGTH:
        return f"Summary is too short: {len(summary)} chars"
    if len(summary) > SUMMARY_MAX_LENGTH:
        return f"Summary is too long: {len(summary)} chars"
    if "lorem" in summary.lower():
        return "Summary contains placeholder text: 'lorem'"
    word_count = len(summary.split())
    if word_count < SUMMARY_MIN_WORDS:
        return f"Summary has too few words: {word_count}"
    return None


def count_sentences(text: str) -> int:
    """
    Count '.'-delimited segments of `text`.

    Empty segments at the end are not counted; blank ones in between are.

    Example:
        >>> count_sentences("Fry. . Serve.")
        3
    """
    segments = text.split(".")
    while segments and segments[-1] == "":
        segments.pop()
    return len(segments)


def validate_rewritten_instructions(text: Optional[str]) -> Optional[str]:
    """Check rewritten instructions: over 100 chars, 3+ sentences, no literal 'null'."""
    if text is None:
        return "Rewritten instructions are null"
    if len(text) <= INSTRUCTIONS_MIN_LENGTH:
        return f"Rewritten instructions too short: {len(text)} chars"
    sentences = count_sentences(text)
    if sentences < INSTRUCTIONS_MIN_SENTENCES:
        return f"Rewritten instructions have too few sentences: {sentences}"
    if "null" in text.lower():
        return "Rewritten instructions contain 'null'"
    return None


def validate_embedding(embedding: Optional[Sequence[float]]) -> Optional[str]:
    """Check an embedding has exactly EMBEDDING_DIMENSION finite values."""
    if embedding is None:
        return "Embedding is null"
    if len(embedding) != EMBEDDING_DIMENSION:
        return f"Embedding length is incorrect: expected {EMBEDDING_DIMENSION}, got {len(embedding)}"
    for index, value in enumerate(embedding):
        if math.isnan(value) or math.isinf(value):
            return f"Embedding contains invalid value at index {index}: {value}"
    return None


def validate_title(title: Optional[str]) -> Optional[str]:
    """
    Check a formatted recipe title.

    Rules:
    - not blank, 4 to 100 characters
    - starts with an uppercase letter
    - only letters, digits, whitespace and - , ' &
    - no placeholder words ("lorem", "null")
    """
    if title is None or not title.strip():
        return "Title is empty or null"
    if len(title) < TITLE_MIN_LENGTH:
        return f"Title is too short: {title}"
    if len(title) > TITLE_MAX_LENGTH:
        return f"Title is too long: {title}"
    if not title[0].isupper():
        return f"Title must start with an uppercase letter: {title}"
    if _TITLE_DISALLOWED.search(title):
        return f"Title contains disallowed characters: {title}"
    lowered = title.lower()
    if "lorem" in lowered or "null" in lowered:
        return f"Title contains placeholder or invalid terms: {title}"
    return None


def clean_title(title: str) -> str:
    """
    Tidy a model-formatted title before validation.

    Drops parenthesised fragments and quotes, turns separator runs
    (":", ";", "|", "=", ">") into " -", folds accents to ASCII and
    collapses whitespace.

    Example:
        >>> clean_title('"Crème Brûlée: Classic (v2)"')
        'Creme Brulee - Classic'
    """
    title = _PARENTHESISED.sub("", title)
    title = _SEPARATOR_RUNS.sub(" -", title)
    title = title.replace('"', "").replace("'", "")
    title = unicodedata.normalize("NFD", title).encode("ascii", "ignore").decode("ascii")
    return _MULTI_SPACE.sub(" ", title.strip())


def sanitize_title(title: str) -> str:
    """Strip characters a title may not contain and collapse whitespace."""
    return " ".join(_TITLE_DISALLOWED.sub("", title).split())
