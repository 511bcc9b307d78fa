"""
Prompt Builder
---------------
A pure function from (context, question, source names, rule set) to the
prompt string.  No clock, no randomness, no I/O: the same input always
gives a byte-identical prompt.

Layout, in order: persona, context, verbatim question, rules.  The rules
enumerate the distinct source names so the model can only cite documents
that were actually retrieved.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from taxrag.generation.prompts import (
    CITATION_RULES,
    EMPTY_CONTEXT_MARKER,
    FALLBACK_ANSWER,
    FORMATTING_RULES,
    GROUNDING_RULES,
    NO_SOURCES_LABEL,
    PERSONA,
    PROMPT_TEMPLATE,
)


@dataclass(frozen=True)
class RuleSet:
    grounding: tuple[str, ...] = GROUNDING_RULES
    citation: tuple[str, ...] = CITATION_RULES
    formatting: tuple[str, ...] = FORMATTING_RULES
    fallback: str = FALLBACK_ANSWER

    def render(self, source_names: Sequence[str]) -> str:
        source_list = (
            ", ".join(f'"{name}"' for name in source_names) if source_names else NO_SOURCES_LABEL
        )
        lines = [
            rule.format(fallback=self.fallback, source_list=source_list)
            for rule in (*self.grounding, *self.citation, *self.formatting)
        ]
        return "\n".join(f"- {line}" for line in lines)


@dataclass(frozen=True)
class PromptInput:
    context: str
    question: str
    source_names: tuple[str, ...] = ()
    rules: RuleSet = field(default_factory=RuleSet)


def distinct(names: Sequence[str]) -> tuple[str, ...]:
    """Drop duplicates, keep first-appearance order."""
    return tuple(dict.fromkeys(names))


def build_prompt(prompt_input: PromptInput, persona: str = PERSONA) -> str:
    return PROMPT_TEMPLATE.format(
        persona=persona,
        context=prompt_input.context or EMPTY_CONTEXT_MARKER,
        question=prompt_input.question,
        rules=prompt_input.rules.render(distinct(prompt_input.source_names)),
    )
