"""Prompt templates for the AI assistant.

Each assistant operation has a Markdown template under ``templates/ai/``
holding the instructions and the JSON shape expected back. Keys are the
path without the suffix::

    prompt = get_prompt("ai/hint", problem_title="Two Sum", difficulty="Easy")

Substitution is a single pass over ``{name}`` placeholders. Names the
caller does not pass stay as they are, so the JSON examples in a template
(and braces inside substituted values) come through untouched.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Mapping

import structlog

logger = structlog.get_logger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

_PLACEHOLDER_RE = re.compile(r"\{([a-z_][a-z0-9_]*)\}")


class PromptNotFoundError(FileNotFoundError):
    """No template exists for the requested key."""

    def __init__(self, key: str, path: Path):
        super().__init__(f"Prompt not found: {key} (looked at {path})")
        self.key = key


def _template_path(key: str) -> Path:
    root = TEMPLATES_DIR.resolve()
    path = (root / f"{key}.md").resolve()
    if root not in path.parents:
        raise PromptNotFoundError(key, path)
    return path


@lru_cache(maxsize=32)
def load_template(key: str) -> str:
    """Raw template text.

    Raises:
        PromptNotFoundError: If the key names no template
    """
    path = _template_path(key)
    if not path.is_file():
        raise PromptNotFoundError(key, path)
    return path.read_text(encoding="utf-8")


def placeholders(key: str) -> set[str]:
    """Names of the ``{name}`` placeholders in a template."""
    return set(_PLACEHOLDER_RE.findall(load_template(key)))


def render(template: str, variables: Mapping[str, object]) -> str:
    def fill(match: re.Match[str]) -> str:
        name = match.group(1)
        return str(variables[name]) if name in variables else match.group(0)

    return _PLACEHOLDER_RE.sub(fill, template)


def get_prompt(key: str, **variables: object) -> str:
    """Template for ``key`` with the given placeholders filled in.

    Raises:
        PromptNotFoundError: If the key names no template
    """
    template = load_template(key)
    unfilled = placeholders(key) - variables.keys()
    if unfilled:
        logger.debug("prompt_placeholders_unfilled", prompt=key, names=sorted(unfilled))
    return render(template, variables)


def list_prompts(category: str | None = None) -> list[str]:
    """Available keys, optionally only those under one category (e.g. "ai")."""
    root = TEMPLATES_DIR / category if category else TEMPLATES_DIR
    if not root.is_dir():
        logger.warning("prompt_templates_missing", path=str(root))
        return []
    return sorted(
        path.relative_to(TEMPLATES_DIR).with_suffix("").as_posix()
        for path in root.rglob("*.md")
    )


def clear_cache() -> None:
    load_template.cache_clear()
