"""LLM client package."""

from practice.llm.client import (
    LLMClient,
    LLMConfig,
    LLMConnectionError,
    LLMError,
    LLMNotConfiguredError,
    LLMResponseError,
    Message,
)

__all__ = [
    "LLMClient",
    "LLMConfig",
    "LLMConnectionError",
    "LLMError",
    "LLMNotConfiguredError",
    "LLMResponseError",
    "Message",
]
