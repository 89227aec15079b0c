"""
Recipe Core - Domain Objects

Plain dataclasses for the values that flow between the search engine,
the enrichment pipeline and the stores, plus the pydantic query schema
shared with the HTTP layer.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def percent_similarity(similarity: float) -> float:
    """
    Map a cosine similarity in [-1, 1] to a percentage in [0, 100].

    -1 (opposite) -> 0%, 0 (orthogonal) -> 50%, 1 (identical) -> 100%.
    """
    return (similarity + 1) / 2 * 100


# ============================================================================
# SIMILARITY SEARCH
# ============================================================================

class SimilarityQuery(BaseModel):
    """Search request: either a free-text prompt or structured fields."""

    prompt: Optional[str] = Field(None, description="Free-text description of the wanted recipe", examples=["something spicy with tofu"])
    title: Optional[str] = Field(None, description="Recipe title (or part of it)", examples=["chicken soup"])
    cuisine: Optional[str] = Field(None, description="Cuisine name", examples=["thai"])
    include_ingredients: Optional[str] = Field(None, description="Comma-separated ingredients to include")
    exclude_ingredients: Optional[str] = Field(None, description="Comma-separated ingredients to exclude", examples=["egg, peanut"])
    meal_type: Optional[str] = Field(None, description="Meal type", examples=["dinner"])
    detail_level: Optional[str] = Field(None, description="Requested level of detail")
    limit: int = Field(20, description="Maximum number of results (structured queries)")

    @property
    def is_prompt_based(self) -> bool:
        return bool(self.prompt and self.prompt.strip())

    @property
    def has_structured_fields(self) -> bool:
        return any(
            value and value.strip()
            for value in (
                self.title,
                self.cuisine,
                self.include_ingredients,
                self.exclude_ingredients,
                self.meal_type,
                self.detail_level,
            )
        )

    def describe(self) -> str:
        """
        Render the structured fields as the text that gets embedded.

        Example:
            "Title: chicken soup, Cuisine: thai, Meal Type: dinner"
        """
        labelled = [
            ("Title", self.title),
            ("Cuisine", self.cuisine),
            ("Include Ingredients", self.include_ingredients),
            ("Exclude Ingredients", self.exclude_ingredients),
            ("Meal Type", self.meal_type),
            ("Detail Level", self.detail_level),
        ]
        return ", ".join(f"{label}: {value}" for label, value in labelled if value)


@dataclass
class SimilarityCandidate:
    """One row returned by the candidate retriever."""
    id: int
    title: str
    summary: str
    similarity: float  # cosine similarity in [-1, 1]
    cosine_distance: float


@dataclass
class RankedCandidate:
    """A candidate plus the scores attached to it by the ranking engine."""
    candidate: SimilarityCandidate
    title_similarity_rank: int = 0
    similarity_rank: int = 0
    cuisine_match_rank: int = 0
    includes_ingredients_count: int = 0
    exact_title_match: bool = False
    prefix_title_match: bool = False
    cuisines: List[str] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.candidate.id

    @property
    def title(self) -> str:
        return self.candidate.title

    @property
    def summary(self) -> str:
        return self.candidate.summary

    @property
    def percent_similarity(self) -> float:
        return percent_similarity(self.candidate.similarity)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "similarity": self.candidate.similarity,
            "percent_similarity": self.percent_similarity,
            "title_similarity_rank": self.title_similarity_rank,
            "similarity_rank": self.similarity_rank,
            "cuisine_match_rank": self.cuisine_match_rank,
            "includes_ingredients_count": self.includes_ingredients_count,
            "exact_title_match": self.exact_title_match,
            "prefix_title_match": self.prefix_title_match,
            "cuisines": list(self.cuisines),
        }


@dataclass
class RecipeDetail:
    """Ingredient and cuisine names for one recipe."""
    id: int
    title: str
    ingredients: List[str] = field(default_factory=list)
    cuisines: List[str] = field(default_factory=list)


# ============================================================================
# ENRICHMENT
# ============================================================================

@dataclass
class RecipeDraft:
    """Working copy of a recipe as it moves through the enrichment stages."""
    id: int
    title: str
    instructions: str
    ingredients: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    embedding: Optional[List[float]] = None


@dataclass
class FailureRecord:
    """Why a recipe could not be enriched in a given run."""
    recipe_id: int
    reason: str
    stage: str = "unknown"
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class EnrichmentStatus:
    """Progress of enrichment across the whole recipe table."""
    total: int
    completed: int
    failed: int

    @property
    def percentage(self) -> float:
        return 0.0 if self.total == 0 else self.completed / self.total * 100


@dataclass
class EnrichmentRunStats:
    """Counters for one run of the enrichment batch."""
    seen: int = 0
    skipped: int = 0
    committed: int = 0
    failed: int = 0


# ============================================================================
# USAGE ACCOUNTING
# ============================================================================

@dataclass
class ModelPrice:
    """Per-million-token prices for one model family."""
    model_family: str
    input_per_mtok_usd: float
    output_per_mtok_usd: float
    effective_from: datetime = field(default_factory=_utcnow)


@dataclass
class QueryLog:
    """One LLM call with its token counts and (once priced) its cost."""
    id: str
    model: str
    prompt: str
    response: str
    recipe_id: Optional[int] = None
    total_tokens: int = 0
    prompt_tokens: int = 0
    response_tokens: int = 0
    reasoning_tokens: int = 0
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0
    priced: bool = False
    created_at: datetime = field(default_factory=_utcnow)
