"""LLM client for the reference backend."""

from .client import VertexRestClient, LLMError, ContentBlockedError

__all__ = ["VertexRestClient", "LLMError", "ContentBlockedError"]
