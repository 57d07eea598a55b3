"""Heuristic extraction of memorable statements from conversations."""

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

CONTEXT_TAG = "supermemory-context"

_INJECTED_BLOCK = re.compile(rf"<{CONTEXT_TAG}>.*?</{CONTEXT_TAG}>", re.DOTALL)
_SYSTEM_BLOCK = re.compile(r"<system(?:\s[^>]*)?>.*?</system>", re.DOTALL)
_SENTENCE_SPLIT = re.compile(r"[.!?\n]+")

MEMORABLE_PATTERNS: tuple[re.Pattern[str], ...] = (
    # Self-referential statements about identity, work or taste
    re.compile(
        r"\b(?:my|i|we|our)\b.*\b(?:name|live|work|born|prefer|like|use|decided|chose"
        r"|favorite|email|phone|project|team|company)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:always|never|usually|every)\b", re.IGNORECASE),
    re.compile(r"\b(?:remember|note|important|key|critical)\b", re.IGNORECASE),
    re.compile(r"\b(?:is called|works at|lives in|born in|graduated from)\b", re.IGNORECASE),
    # Preference followed by an infinitive or gerund
    re.compile(r"\b(?:prefer|enjoy|dislike|love|hate)\b.*\b(?:to\b|\w+ing\b)", re.IGNORECASE),
    re.compile(r"\b(?:switched to|started using|stopped using|migrated to)\b", re.IGNORECASE),
    re.compile(r"\b(?:deadline|due|scheduled|meeting|appointment)\b", re.IGNORECASE),
)


def strip_injected_context(text: str) -> str:
    """Remove recall blocks and system-delimited blocks from text."""
    text = _INJECTED_BLOCK.sub("", text)
    return _SYSTEM_BLOCK.sub("", text).strip()


def conversation_text(messages: list[dict[str, Any]]) -> str:
    """Join the user and assistant turns of a conversation into plain text."""
    lines = []
    for msg in messages:
        role = msg.get("role")
        content = msg.get("content")
        # Skip system and tool messages, and non-text content
        if role in ("user", "assistant") and isinstance(content, str):
            lines.append(content)
    return "\n".join(lines)


class MemoryExtractor:
    """Proposes memorable sentences from free text using fixed patterns."""

    def __init__(
        self,
        min_input_length: int = 20,
        min_sentence_length: int = 16,
        max_sentence_length: int = 500,
        max_items: int = 5,
        patterns: tuple[re.Pattern[str], ...] = MEMORABLE_PATTERNS,
    ) -> None:
        """Initialize the extractor.

        Args:
            min_input_length: Inputs shorter than this yield nothing.
            min_sentence_length: Shortest sentence kept (inclusive).
            max_sentence_length: Sentences this long or longer are dropped.
            max_items: Cap on the number of candidates returned.
            patterns: Heuristics, any one of which marks a sentence memorable.
        """
        self.min_input_length = min_input_length
        self.min_sentence_length = min_sentence_length
        self.max_sentence_length = max_sentence_length
        self.max_items = max_items
        self.patterns = patterns

    def extract(self, text: str) -> list[str]:
        """Extract candidate memories from conversation text.

        Args:
            text: Raw conversation text, possibly containing injected context.

        Returns:
            Up to ``max_items`` distinct sentences in first-seen order.
        """
        if not text:
            return []

        cleaned = strip_injected_context(text)
        if len(cleaned) < self.min_input_length:
            return []

        candidates: list[str] = []
        seen: set[str] = set()
        for sentence in self._split_sentences(cleaned):
            if sentence in seen or not self.is_memorable(sentence):
                continue
            seen.add(sentence)
            candidates.append(sentence)
            if len(candidates) >= self.max_items:
                break

        logger.debug("Extracted %d candidate memories", len(candidates))
        return candidates

    def is_memorable(self, sentence: str) -> bool:
        """Check whether a sentence matches any memorable pattern."""
        return any(p.search(sentence) for p in self.patterns)

    def _split_sentences(self, text: str) -> list[str]:
        """Split text into sentences within the accepted length range."""
        sentences = (s.strip() for s in _SENTENCE_SPLIT.split(text))
        return [
            s
            for s in sentences
            if self.min_sentence_length <= len(s) < self.max_sentence_length
        ]
