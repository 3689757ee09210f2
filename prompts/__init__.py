"""Prompt templates for the planning chat and the nearby-suggestions agent.

Prompts are Markdown files next to this module. They use ``$name``
placeholders (``string.Template``) so the JSON examples inside them need no
brace escaping; a literal dollar sign is written ``$$``. Any prompt can be
replaced at deploy time through a ``TRIP_PLANNER_PROMPT_<NAME>`` environment
variable holding either a file path or the literal prompt text. Overrides are
checked when loaded: a stray ``$`` or a placeholder the bundled prompt does not
define raises ``ValueError`` naming the variable.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from string import Template
from typing import Any, List

__all__ = ["PromptTemplate", "available_prompts", "load_prompt_template", "render_prompt"]

_PROMPT_ROOT = Path(__file__).resolve().parent
_ENV_PREFIX = "TRIP_PLANNER_PROMPT_"


def _resolve_override(name: str) -> str | None:
    value = os.getenv(_ENV_PREFIX + name.upper())
    if not value:
        return None
    path = Path(value)
    if path.is_file():
        return path.read_text(encoding="utf-8")
    return value


@dataclass(frozen=True)
class PromptTemplate:
    text: str

    def format(self, **kwargs: Any) -> str:
        """Substitute ``$placeholders``; a missing value raises ``KeyError``."""
        return Template(self.text).substitute(**kwargs)

    @property
    def placeholders(self) -> List[str]:
        return sorted({
            m.group("named") or m.group("braced")
            for m in Template.pattern.finditer(self.text)
            if m.group("named") or m.group("braced")
        })

    @property
    def stray_dollar_offsets(self) -> List[int]:
        """Offsets of ``$`` signs that are neither ``$$`` nor a placeholder."""
        return [m.start() for m in Template.pattern.finditer(self.text) if m.group("invalid") is not None]


def _bundled_path(filename: str) -> Path:
    path = _PROMPT_ROOT / filename
    if not path.exists():
        raise FileNotFoundError(f"Prompt file not found: {path} (available: {', '.join(available_prompts())})")
    return path


def _checked_override(name: str, filename: str, text: str) -> PromptTemplate:
    variable = _ENV_PREFIX + name.upper()
    template = PromptTemplate(text)
    stray = template.stray_dollar_offsets
    if stray:
        raise ValueError(f"{variable}: stray '$' at offset {stray[0]}; write '$$' for a literal dollar sign")
    bundled = PromptTemplate(_bundled_path(filename).read_text(encoding="utf-8"))
    unknown = sorted(set(template.placeholders) - set(bundled.placeholders))
    if unknown:
        raise ValueError(
            f"{variable}: unknown placeholders {unknown}; {filename} accepts {bundled.placeholders or 'none'}"
        )
    return template


@lru_cache(maxsize=None)
def load_prompt_template(name: str, filename: str) -> PromptTemplate:
    """Load ``filename`` from this package unless ``TRIP_PLANNER_PROMPT_<NAME>`` overrides it."""
    override = _resolve_override(name)
    if override is not None:
        return _checked_override(name, filename, override)
    return PromptTemplate(_bundled_path(filename).read_text(encoding="utf-8"))


def render_prompt(name: str, filename: str, **kwargs: Any) -> str:
    return load_prompt_template(name, filename).format(**kwargs)


def available_prompts() -> List[str]:
    return sorted(p.name for p in _PROMPT_ROOT.glob("*.md"))
