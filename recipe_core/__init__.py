"""
Recipe Core - Core Module

Shared building blocks for the recipe enrichment batch and the search API.
Import from here for clean, centralized access to core functionality.

Usage:
    from recipe_core import (
        # Config
        DATABASE_URL,
        CHROMA_PATH,

        # Search
        SimilarityQuery,
        SimilaritySearchEngine,

        # Enrichment
        EnrichmentPipeline,

        # Stores
        create_session_factory,
        SqlRecipeStore,
    )
"""

# Configuration constants
from recipe_core.config import (
    # Storage
    DATABASE_URL,
    CHROMA_PATH,
    DEFAULT_RECIPES_PATH,

    # Embedding settings
    EMBEDDING_MODEL,
    EMBEDDING_DIMENSION,

    # LLM settings
    GEMINI_MODEL,
    GEMINI_TEMPERATURE,

    # Search settings
    DEFAULT_SEARCH_LIMIT,
    CANDIDATE_OVERFETCH,

    # Batch settings
    BATCH_CHUNK_SIZE,
    ALLOWED_PARTITIONS,
)

# Errors
from recipe_core.errors import (
    RecipeCoreError,
    InvalidArgument,
    ProviderError,
    ValidationError,
    NotFound,
)

# Domain objects
from recipe_core.models import (
    SimilarityQuery,
    SimilarityCandidate,
    RankedCandidate,
    RecipeDetail,
    RecipeDraft,
    FailureRecord,
    EnrichmentStatus,
    EnrichmentRunStats,
    ModelPrice,
    QueryLog,
    percent_similarity,
)

# Relational stores
from recipe_core.db import create_session_factory
from recipe_core.store import (
    SqlRecipeStore,
    SqlFailureStore,
    SqlPriceTable,
    SqlQueryLogStore,
    seed_prices,
)

# Embedding model and vector index
from recipe_core.embeddings import (
    create_embeddings,
    create_chroma_client,
    initialize_vectorstore,
    recipe_collection,
    ChromaCandidateRetriever,
    upsert_recipe_vector,
)

# LLM client
from recipe_core.llm import initialize_llm, RecipeLLMClient

# Search, enrichment and accounting
from recipe_core.retrieval import SimilaritySearchEngine
from recipe_core.enrichment import EnrichmentPipeline, StageResult
from recipe_core.pricing import PricingService, QueryLogRecorder, calculate_costs, create_usage_recorder
from recipe_core.logging_utils import setup_logging
