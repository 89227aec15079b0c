"""
Recipe Core - Embedding Model and Vector Index

This module handles:
- HuggingFace embedding model initialization
- ChromaDB vector index connection (cosine space)
- Candidate retrieval by vector similarity
- Writing enriched recipe vectors into the index

Centralizing this ensures enrich.py and api.py use identical settings.
"""

import logging
import os
from typing import Callable, Iterable, List, Optional, Sequence

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.models.Collection import Collection
from langchain_chroma import Chroma
from langchain_huggingface import HuggingFaceEmbeddings

from recipe_core.config import CHROMA_COLLECTION, CHROMA_PATH, EMBEDDING_MODEL
from recipe_core.errors import ValidationError
from recipe_core.models import RecipeDraft, SimilarityCandidate
from recipe_core.validation import validate_embedding

logger = logging.getLogger(__name__)

# (title fragment) -> ids of recipes whose title contains it, case-insensitively
TitleIndex = Callable[[str], Iterable[int]]

COLLECTION_METADATA = {"hnsw:space": "cosine"}


def create_embeddings() -> HuggingFaceEmbeddings:
    """
    Create the HuggingFace embedding model instance.

    This function ensures consistent embedding configuration across
    enrichment and search. The model downloads to ~/.cache/huggingface
    on first run (~420MB).

    Configuration:
    - device: "cpu" (change to "cuda" for GPU acceleration)
    - normalize_embeddings: True (required for cosine similarity)

    Returns:
        Configured HuggingFaceEmbeddings instance

    Note:
        Both enrich.py and api.py MUST use this function to ensure
        embedding consistency. Mismatched embeddings = broken search.
    """
    return HuggingFaceEmbeddings(
        model_name=EMBEDDING_MODEL,
        model_kwargs={"device": "cpu"},
        encode_kwargs={"normalize_embeddings": True}
    )


def create_chroma_client(path: str = CHROMA_PATH, create: bool = False) -> ClientAPI:
    """
    Open the persistent Chroma client behind the recipe vector index.

    The API only reads from the index, so by default a missing index is an
    error. The enrichment batch passes create=True to start a new one.

    Raises:
        FileNotFoundError: If the index doesn't exist and create is False
    """
    if not create and not os.path.exists(path):
        raise FileNotFoundError(
            f"Vector index not found at {path}. "
            f"Please run 'python enrich.py' first to create it."
        )
    return chromadb.PersistentClient(path=path)


def recipe_collection(client: ClientAPI) -> Collection:
    """
    The Chroma collection holding recipe vectors, in cosine space.

    Enriched vectors are written here directly: they were computed and
    validated during enrichment and must be stored as-is, which the
    LangChain wrapper (it re-embeds every text it adds) cannot do.
    """
    return client.get_or_create_collection(name=CHROMA_COLLECTION, metadata=COLLECTION_METADATA)


def initialize_vectorstore(embeddings=None, create: bool = False, client: Optional[ClientAPI] = None) -> Chroma:
    """
    Open the recipe vector index for similarity search.

    Args:
        embeddings: Embedding model to attach (created if omitted)
        create: Create the index directory when it does not exist
        client: Chroma client to share with recipe_collection() (opened if omitted)

    Returns:
        Chroma vector store instance using cosine distance

    Raises:
        FileNotFoundError: If the index doesn't exist and create is False
    """
    return Chroma(
        client=client or create_chroma_client(create=create),
        collection_name=CHROMA_COLLECTION,
        embedding_function=embeddings or create_embeddings(),
        collection_metadata=COLLECTION_METADATA,
    )


# ============================================================================
# CANDIDATE RETRIEVAL
# ============================================================================

class ChromaCandidateRetriever:
    """
    Nearest-neighbour lookup over enriched recipes.

    Chroma reports cosine distance in [0, 2]; similarity is 1 - distance,
    so results range over [-1, 1] like the raw cosine.
    """

    def __init__(self, vectorstore: Chroma, title_index: Optional[TitleIndex] = None):
        self.vectorstore = vectorstore
        self.title_index = title_index

    def find_by_similarity(
        self,
        embedding: Sequence[float],
        limit: int,
        title_filter: Optional[str] = None,
    ) -> List[SimilarityCandidate]:
        where = None
        if title_filter and self.title_index is not None:
            ids = sorted(set(self.title_index(title_filter)))
            if not ids:
                logger.debug(f"No recipe titles contain '{title_filter}'")
                return []
            where = {"recipe_id": {"$in": ids}}

        results = self.vectorstore.similarity_search_by_vector_with_relevance_scores(
            embedding=list(embedding),
            k=limit,
            filter=where,
        )

        candidates = []
        for doc, distance in results:
            title = doc.metadata.get("title", "")
            # Without a title index the filter is applied to what came back
            if title_filter and where is None and title_filter.lower() not in title.lower():
                continue
            candidates.append(SimilarityCandidate(
                id=int(doc.metadata["recipe_id"]),
                title=title,
                summary=doc.metadata.get("summary", ""),
                similarity=1.0 - distance,
                cosine_distance=distance,
            ))

        logger.debug(f"Retrieved {len(candidates)} candidate(s) for limit {limit}")
        return candidates


def upsert_recipe_vector(collection: Collection, draft: RecipeDraft, document: str) -> None:
    """
    Store (or replace) the vector of an enriched recipe.

    The vector computed during enrichment is written as-is, so the index
    holds exactly what was committed to the recipe table.
    """
    reason = validate_embedding(draft.embedding)
    if reason:
        raise ValidationError(f"Recipe {draft.id} cannot be indexed: {reason}")

    collection.upsert(
        ids=[str(draft.id)],
        embeddings=[list(draft.embedding)],
        documents=[document],
        metadatas=[{
            "recipe_id": draft.id,
            "title": draft.title,
            "summary": draft.summary or "",
        }],
    )
    logger.debug(f"Indexed vector for recipe {draft.id}")
