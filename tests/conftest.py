"""
Pytest Configuration and Shared Fixtures

Fixtures are reusable test components that pytest injects into test functions.
Define mock data and setup logic here to avoid repetition across tests.
"""

import pytest
from unittest.mock import MagicMock

from recipe_core.db import create_session_factory
from recipe_core.models import RecipeDetail, RecipeDraft, SimilarityCandidate
from recipe_core.store import SqlRecipeStore


# ============================================================================
# VALID LLM OUTPUTS
# ============================================================================

GOOD_INSTRUCTIONS = (
    "Press the tofu for ten minutes and cut it into cubes. "
    "Heat the oil in a wok over high heat until it shimmers. "
    "Fry the tofu until golden, then add the chili paste and soy sauce. "
    "Toss everything together and serve hot over steamed rice."
)

GOOD_SUMMARY = (
    "Crispy tofu cubes are fried in a hot wok and tossed with chili paste "
    "and soy sauce for a quick, spicy dinner."
)

GOOD_TITLE = "Spicy Tofu Stir Fry"


@pytest.fixture
def good_instructions():
    return GOOD_INSTRUCTIONS


@pytest.fixture
def good_summary():
    return GOOD_SUMMARY


@pytest.fixture
def good_title():
    return GOOD_TITLE


@pytest.fixture
def good_embedding():
    """A valid 768-dimensional embedding."""
    return [0.01] * 768


@pytest.fixture
def fake_client(good_embedding):
    """
    Embedding client whose every call succeeds with valid output.

    Tests override individual methods to make one stage fail.
    """
    client = MagicMock()
    client.rewrite.return_value = GOOD_INSTRUCTIONS
    client.format_title.return_value = GOOD_TITLE
    client.summarize.return_value = GOOD_SUMMARY
    client.embed.return_value = good_embedding
    return client


# ============================================================================
# CANDIDATES AND DETAILS
# ============================================================================

@pytest.fixture
def spicy_tofu_candidates():
    """
    Retriever output for "spicy tofu", in descending similarity.

    Candidate 2 repeats candidate 1's title with a lower similarity.
    """
    return [
        SimilarityCandidate(id=1, title="Spicy Tofu Stir Fry", summary="Tofu fried with chili.", similarity=0.9, cosine_distance=0.1),
        SimilarityCandidate(id=2, title="Spicy Tofu Stir Fry", summary="Another tofu stir fry.", similarity=0.7, cosine_distance=0.3),
        SimilarityCandidate(id=3, title="Plain Rice", summary="Steamed white rice.", similarity=0.1, cosine_distance=0.9),
    ]


@pytest.fixture
def sample_details():
    """Fetched details keyed by recipe id."""
    return {
        1: RecipeDetail(id=1, title="Spicy Tofu Stir Fry", ingredients=["tofu", "chili paste", "soy sauce"], cuisines=["chinese"]),
        2: RecipeDetail(id=2, title="Spicy Tofu Stir Fry", ingredients=["tofu", "egg"], cuisines=["chinese"]),
        3: RecipeDetail(id=3, title="Plain Rice", ingredients=["rice", "water"], cuisines=[]),
    }


@pytest.fixture
def detail_store(sample_details):
    """Recipe store mock that serves sample_details."""
    store = MagicMock()
    store.fetch_details.side_effect = lambda recipe_id: sample_details.get(recipe_id)
    return store


@pytest.fixture
def raw_draft():
    """An unenriched recipe as fetched from the store."""
    return RecipeDraft(
        id=10,
        title="spicy tofu stir-fry (v2)",
        instructions="press tofu. cube. fry w/ oil. add chili + soy.",
        ingredients=["tofu", "chili paste", "soy sauce"],
    )


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
def sessions(tmp_path):
    """Session factory for a fresh SQLite database in tmp_path."""
    return create_session_factory(f"sqlite:///{tmp_path}/test.db")


@pytest.fixture
def recipe_store(sessions):
    return SqlRecipeStore(sessions)
