"""
Recipe Core - Centralized Configuration

This module contains all configuration constants used across the application.
Centralizing config prevents drift between ingest.py, enrich.py and api.py.

Deployment-specific values can be overridden through environment variables
(or a .env file in the working directory).

Usage:
    from recipe_core.config import EMBEDDING_MODEL, DATABASE_URL
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _int_set(raw: str) -> frozenset[int]:
    return frozenset(int(part) for part in raw.split(",") if part.strip())


# ============================================================================
# STORAGE
# ============================================================================

# Relational store for recipes, failures, query logs and model prices
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./recipes.db")

# Vector index location (written by enrich.py, read by api.py)
CHROMA_PATH = os.getenv("CHROMA_PATH", "./chroma_db")

# Chroma collection holding one vector per enriched recipe
CHROMA_COLLECTION = "recipes"

# Default JSON file for ingestion
DEFAULT_RECIPES_PATH = "data/recipes.json"


# ============================================================================
# EMBEDDING MODEL
# ============================================================================

# CRITICAL: enrichment and search MUST embed with the same model
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "sentence-transformers/all-mpnet-base-v2")

# Fixed dimensionality contract; enrichment rejects vectors of any other size
EMBEDDING_DIMENSION = 768

# Prefix prepended to every text before embedding
EMBED_PREFIX = (
    "Generate a semantic embedding for the following recipe text, "
    "capturing its ingredients, cooking methods, and overall meaning:"
)


# ============================================================================
# LLM CONFIGURATION
# ============================================================================

GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-flash-latest")

# Low temperature keeps rewrites close to the source recipe
GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.3"))

# Outbound call timeout; exceeding it is a provider error (no retry)
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))


# ============================================================================
# SIMILARITY SEARCH
# ============================================================================

# Results returned for prompt-based searches
DEFAULT_SEARCH_LIMIT = 20

# Extra candidates fetched on top of the limit to survive dedup and filtering
CANDIDATE_OVERFETCH = int(os.getenv("CANDIDATE_OVERFETCH", "30"))

# Detail fetch fan-out
DETAIL_FETCH_WORKERS = int(os.getenv("DETAIL_FETCH_WORKERS", "8"))
DETAIL_FETCH_TIMEOUT_SECONDS = float(os.getenv("DETAIL_FETCH_TIMEOUT_SECONDS", "10"))

# Words ignored by the word-overlap score
STOPWORDS = frozenset({"a", "an", "the", "and", "or", "but"})

# Score given when the query cuisine matches one of the recipe's cuisines
CUISINE_MATCH_SCORE = 10


# ============================================================================
# ENRICHMENT BATCH
# ============================================================================

# Items per chunk (commit boundary for the batch driver)
BATCH_CHUNK_SIZE = int(os.getenv("BATCH_CHUNK_SIZE", "10"))

# Number of id partitions; an item belongs to partition id % PARTITION_COUNT
PARTITION_COUNT = 10

# Partitions processed by this run; split across machines to run in parallel
ALLOWED_PARTITIONS = _int_set(os.getenv("ALLOWED_PARTITIONS", "0,1,2,3,4,5,6,7,8,9"))


# ============================================================================
# USAGE ACCOUNTING
# ============================================================================

# Seed prices (USD per million tokens: input, output), inserted when missing
DEFAULT_MODEL_PRICES = {
    "gemini-flash-latest": (0.30, 2.50),
    "gemini-2.5-flash": (0.30, 2.50),
    "gemini-2.5-pro": (1.25, 10.00),
}
