"""Prompt templates for the AI assistant."""

from practice.prompts.registry import (
    PromptNotFoundError,
    clear_cache,
    get_prompt,
    list_prompts,
    placeholders,
)

__all__ = ["PromptNotFoundError", "clear_cache", "get_prompt", "list_prompts", "placeholders"]
