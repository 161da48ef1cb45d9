"""LLM module exports."""

from modlink.llm.client import CompletionRequest, HttpLLMClient, LLMClient

__all__ = ["CompletionRequest", "HttpLLMClient", "LLMClient"]
