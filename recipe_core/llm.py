"""
Recipe Core - LLM Functions

Business logic for LLM initialization and the four model calls the
enrichment pipeline and the search engine depend on:

- rewrite:      clean up raw cooking instructions
- format_title: turn a scraped title into a clean, capitalized one
- summarize:    1-2 sentence summary of the rewritten instructions
- embed:        768-dim vector for search

Every chat call is recorded in the query log (tokens, then cost) when a
usage recorder is attached. Any failure is raised as ProviderError.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from langchain_core.prompts import ChatPromptTemplate
from langchain_google_genai import ChatGoogleGenerativeAI

from recipe_core.config import EMBED_PREFIX, GEMINI_MODEL, GEMINI_TEMPERATURE, LLM_TIMEOUT_SECONDS
from recipe_core.errors import ProviderError

logger = logging.getLogger(__name__)


# ============================================================================
# PROMPTS
# ============================================================================

RECIPE_SYSTEM_PROMPT = (
    "You are a helpful assistant that rewrites cooking instructions to "
    "be clearer and easier to read."
)

REWRITE_TEMPLATE = """
Clean up and rewrite the following cooking instructions to make them easy to read and follow.

RULES:
1. Use clear, natural phrasing without abbreviations or shorthand
2. Keep the steps in their logical order
3. Write each step as a complete sentence ending with a period
4. No numbering, bullets, or line breaks
5. Output ONLY the rewritten instructions

INSTRUCTIONS:
{instructions}
"""

TITLE_SYSTEM_PROMPT = (
    "You are a title formatter. Your job is to rewrite recipe titles to be clean, "
    "properly capitalized, and user-friendly. Remove unnecessary labels, versions, "
    "or formatting artifacts. Do not include explanations, only return the fixed title."
)

TITLE_TEMPLATE = """
Format the following recipe title into a clean, properly capitalized, user-friendly
title without extra labels or formatting:

{title}
"""

SUMMARIZE_TEMPLATE = """
Summarize the following cooking instructions into 1-2 concise, complete sentences,
capturing the core steps and overall purpose of the dish.

INSTRUCTIONS:
{instructions}

SUMMARY:"""


def initialize_llm() -> ChatGoogleGenerativeAI:
    """
    Initialize Google Gemini LLM for instruction rewriting and summaries.

    Requires GOOGLE_API_KEY in environment variables.

    Returns:
        ChatGoogleGenerativeAI: LLM instance

    Raises:
        ValueError: If GOOGLE_API_KEY is not set
    """
    api_key = os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise ValueError(
            "GOOGLE_API_KEY not found in environment variables. "
            "Please add it to your .env file."
        )

    return ChatGoogleGenerativeAI(
        model=GEMINI_MODEL,
        temperature=GEMINI_TEMPERATURE,
        google_api_key=api_key,
        timeout=LLM_TIMEOUT_SECONDS,
        max_retries=0,
    )


# ============================================================================
# RESPONSE HELPERS
# ============================================================================

def extract_text(response) -> str:
    """Return the text of a chat response, for both string and content-block formats."""
    content = response.content
    if isinstance(content, list):
        # New format: extract text from the first content block
        return content[0].get("text", "") if content else ""
    return content or ""


def extract_usage(response) -> Dict[str, int]:
    """
    Read token counts from a chat response's usage metadata.

    Returns zeros when the provider reported no usage.
    """
    usage = getattr(response, "usage_metadata", None) or {}
    if not usage:
        logger.warning("No usage info in completion response")
    details = usage.get("output_token_details") or {}
    prompt_tokens = usage.get("input_tokens", 0) or 0
    response_tokens = usage.get("output_tokens", 0) or 0
    return {
        "prompt_tokens": prompt_tokens,
        "response_tokens": response_tokens,
        "reasoning_tokens": details.get("reasoning", 0) or 0,
        "total_tokens": usage.get("total_tokens", prompt_tokens + response_tokens) or 0,
    }


# ============================================================================
# CLIENT
# ============================================================================

class RecipeLLMClient:
    """
    Chat model + embedding model behind one object.

    Both underlying LangChain clients are stateless per call, so one
    instance is shared by request threads and the enrichment batch.
    """

    def __init__(self, llm, embeddings, usage_recorder=None, model_name: str = GEMINI_MODEL):
        self.llm = llm
        self.embeddings = embeddings
        self.usage_recorder = usage_recorder
        self.model_name = model_name

    def _chat(
        self,
        operation: str,
        template: str,
        system_prompt: Optional[str] = None,
        recipe_id: Optional[int] = None,
        **values: Any,
    ) -> str:
        messages = [("human", template)]
        if system_prompt:
            messages.insert(0, ("system", system_prompt))
        prompt = ChatPromptTemplate.from_messages(messages)
        formatted = prompt.format_messages(**values)

        try:
            response = self.llm.invoke(formatted)
        except Exception as e:
            raise ProviderError(operation, str(e)) from e

        text = extract_text(response).strip()
        if not text:
            raise ProviderError(operation, "No response from LLM")

        if self.usage_recorder is not None:
            self.usage_recorder.record(
                model=self.model_name,
                prompt="\n".join(str(message.content) for message in formatted),
                response=text,
                response_id=getattr(response, "id", None),
                recipe_id=recipe_id,
                **extract_usage(response),
            )

        logger.debug(f"LLM {operation} for recipe {recipe_id}: {len(text)} chars")
        return text

    def rewrite(self, text: str, recipe_id: Optional[int] = None) -> str:
        return self._chat(
            "rewrite", REWRITE_TEMPLATE,
            system_prompt=RECIPE_SYSTEM_PROMPT, recipe_id=recipe_id, instructions=text,
        )

    def format_title(self, title: str, recipe_id: Optional[int] = None) -> str:
        return self._chat(
            "title", TITLE_TEMPLATE,
            system_prompt=TITLE_SYSTEM_PROMPT, recipe_id=recipe_id, title=title,
        )

    def summarize(self, text: str, recipe_id: Optional[int] = None) -> str:
        # Summaries are single-line; the model sometimes wraps them
        summary = self._chat("summarize", SUMMARIZE_TEMPLATE, recipe_id=recipe_id, instructions=text)
        return " ".join(summary.split())

    def embed(self, text: str, recipe_id: Optional[int] = None) -> List[float]:
        """Embed text with the shared instruction prefix."""
        try:
            vector = self.embeddings.embed_query(f"{EMBED_PREFIX} {text}")
        except Exception as e:
            raise ProviderError("embed", str(e)) from e
        if not vector:
            raise ProviderError("embed", "No embedding returned")
        return [float(value) for value in vector]
