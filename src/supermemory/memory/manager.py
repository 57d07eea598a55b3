"""Memory manager for orchestrating recall and capture around a conversation turn."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from ..config import MemoryConfig
from .classifier import classify
from .extractor import CONTEXT_TAG, MemoryExtractor, conversation_text
from .models import Category, Memory
from .store import MemoryStore

if TYPE_CHECKING:
    from ..logging import JSONLLogger

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 200


class MemoryManager:
    """Orchestrates memory operations: recall, capture and explicit storage.

    Recall and capture are fault-isolated: any error inside either one is
    logged and the conversation continues as if memory were disabled.
    Session keys are always passed explicitly per call.
    """

    def __init__(
        self,
        store: MemoryStore,
        config: MemoryConfig | None = None,
        extractor: MemoryExtractor | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: The MemoryStore for persistence.
            config: Feature flags and limits. Defaults to MemoryConfig().
            extractor: Candidate extractor for capture.
            event_log: Optional structured event log.
        """
        self.store = store
        self.config = config or MemoryConfig()
        self.extractor = extractor or MemoryExtractor()
        self.event_log = event_log

    def format_for_prompt(self, memories: list[Memory]) -> str:
        """Format memories as a block for injection into the context.

        Args:
            memories: Memories to format.

        Returns:
            Tagged context block, or empty string if no memories.
        """
        if not memories:
            return ""

        lines = [f"- [{m.category.value}] {m.content}" for m in memories]
        content = "\n".join(lines)

        return f"<{CONTEXT_TAG}>\n{content}\n</{CONTEXT_TAG}>"

    def recall(
        self, messages: list[dict[str, Any]], session_key: str = ""
    ) -> list[dict[str, Any]]:
        """Inject memories relevant to the latest user message.

        The block is appended to a leading system message, or prepended as
        a new system message if there is none.

        Args:
            messages: The conversation so far, as role/content dicts.
            session_key: Session the turn belongs to.

        Returns:
            A new message list with the context block, or ``messages``
            unchanged if recall is disabled, finds nothing, or fails.
        """
        if not self.config.auto_recall or not messages:
            return messages

        started = time.monotonic()
        try:
            query = self._latest_user_query(messages)
            if not query:
                return messages

            results = self.store.search(query, self.config.max_recall_results)
            self._log_recall(query, len(results), session_key, started)
            if not results:
                return messages

            block = self.format_for_prompt(results)
            injected = [dict(m) for m in messages]
            first = injected[0]
            if first.get("role") == "system" and isinstance(first.get("content"), str):
                first["content"] = f"{first['content']}\n\n{block}"
            else:
                injected.insert(0, {"role": "system", "content": block})
            return injected

        except Exception as e:
            logger.exception("Memory recall failed")
            self._log_error("recall", e, session_key)
            return messages

    def capture(
        self, messages: list[dict[str, Any]], session_key: str = ""
    ) -> list[Memory]:
        """Extract memorable statements from a finished turn and store them.

        Candidates that already exist (case-insensitive exact match) are
        skipped.

        Args:
            messages: The conversation messages of the turn.
            session_key: Session the turn belongs to.

        Returns:
            Newly stored memories (empty if disabled, nothing new, or on error).
        """
        if not self.config.auto_capture or not messages:
            return []

        started = time.monotonic()
        stored: list[Memory] = []
        try:
            candidates = self.extractor.extract(conversation_text(messages))
            for item in candidates:
                if self._is_duplicate(item):
                    self._debug(f"skipping duplicate memory: {item[:80]}")
                    continue
                memory = self.store.create(item, classify(item), session_key)
                if memory is not None:
                    stored.append(memory)
                    self._log_store(memory, "auto")

            if self.event_log is not None:
                self.event_log.log_capture(
                    len(candidates),
                    len(stored),
                    session_key=session_key,
                    duration_ms=(time.monotonic() - started) * 1000,
                )
            return stored

        except Exception as e:
            logger.exception("Memory capture failed")
            self._log_error("capture", e, session_key)
            return stored

    def remember(
        self,
        content: str,
        category: Category | str | None = None,
        session_key: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Memory | None:
        """Store an explicit memory, inferring the category if not given.

        Unlike capture, errors propagate to the caller.
        """
        cat = Category.parse(category) if category else classify(content)
        memory = self.store.create(content, cat, session_key, metadata)
        if memory is not None:
            self._log_store(memory, "explicit")
        return memory

    def _latest_user_query(self, messages: list[dict[str, Any]]) -> str:
        """Return the last user message, truncated for querying."""
        for msg in reversed(messages):
            if msg.get("role") != "user":
                continue
            content = msg.get("content")
            if not isinstance(content, str):
                return ""
            query = content[:MAX_QUERY_LENGTH]
            return query if query.strip() else ""
        return ""

    def _is_duplicate(self, content: str) -> bool:
        existing = self.store.search(content, 1)
        if existing and existing[0].content.casefold() == content.casefold():
            return True
        # The top hit may be a longer memory containing the candidate
        return self.store.find_exact(content) is not None

    def _debug(self, message: str) -> None:
        if self.config.debug:
            logger.info("supermemory [debug]: %s", message)
        if self.event_log is not None:
            self.event_log.debug(message)

    def _log_recall(self, query: str, count: int, session_key: str, started: float) -> None:
        self._debug(f'recall "{query[:80]}" -> {count} result(s)')
        if self.event_log is not None:
            self.event_log.log_recall(
                query,
                count,
                session_key=session_key,
                duration_ms=(time.monotonic() - started) * 1000,
            )

    def _log_store(self, memory: Memory, source: str) -> None:
        if self.event_log is not None:
            self.event_log.log_store(
                memory.id,
                memory.category.value,
                session_key=memory.session_key,
                source=source,
            )

    def _log_error(self, stage: str, error: Exception, session_key: str) -> None:
        if self.event_log is None:
            return
        try:
            self.event_log.log_error(stage, error, session_key=session_key)
        except OSError:
            logger.warning("Could not write %s error to event log", stage)
