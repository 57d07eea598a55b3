"""Heuristic category classification for memory text.

Rules are evaluated in order and the first match wins, so a sentence that
carries both preference and fact vocabulary ("I love Python, it is fast")
is tagged as a preference.
"""

import re
from dataclasses import dataclass

from .models import Category


@dataclass(frozen=True)
class ClassificationRule:
    """A single ordered rule mapping a pattern to a category."""

    category: Category
    pattern: re.Pattern[str]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


CLASSIFICATION_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule(
        Category.PREFERENCE,
        re.compile(r"\b(?:prefer|like|love|hate|want|enjoy|dislike|favorite|favourite)", re.IGNORECASE),
    ),
    ClassificationRule(
        Category.DECISION,
        re.compile(r"\b(?:decided|will use|going with|chose|picked|switched to)\b", re.IGNORECASE),
    ),
    ClassificationRule(
        Category.ENTITY,
        re.compile(
            r"\+?\d{10,}"
            r"|[\w.+-]+@[\w-]+(?:\.[\w-]+)+"
            r"|\b(?:is called|named|lives in|works at)\b",
            re.IGNORECASE,
        ),
    ),
    ClassificationRule(
        Category.FACT,
        re.compile(r"\b(?:is|are|has|have|was|were)\b", re.IGNORECASE),
    ),
)


def classify(text: str) -> Category:
    """Classify text into a memory category.

    Never raises; empty or unmatched text is ``Category.OTHER``.
    """
    if not text:
        return Category.OTHER

    for rule in CLASSIFICATION_RULES:
        if rule.matches(text):
            return rule.category
    return Category.OTHER
