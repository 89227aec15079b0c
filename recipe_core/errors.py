"""
Recipe Core - Error Types

One exception per failure kind the core distinguishes:

- InvalidArgument: malformed query, rejected before any external call
- ProviderError: the LLM provider failed or returned nothing usable
- ValidationError: generated content failed a quality gate
- NotFound: a referenced recipe, log or model price does not exist
"""


class RecipeCoreError(Exception):
    """Base class for all errors raised by recipe_core."""


class InvalidArgument(RecipeCoreError, ValueError):
    """Raised when a caller supplies a malformed request."""


class ProviderError(RecipeCoreError):
    """Raised when an LLM call fails (transport, 4xx/5xx, empty response)."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"Error calling LLM {operation}: {message}")
        self.operation = operation


class ValidationError(RecipeCoreError):
    """Raised when generated content does not pass a quality check."""


class NotFound(RecipeCoreError, LookupError):
    """Raised when a referenced entity does not exist."""
