"""Host-facing memory plugin.

Bundles one store with the turn hooks (recall before a turn, capture after
it) and the per-session memory tool registry, so an agent host only has to
call ``start``, the two hooks, ``tools`` and ``stop``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .config import MemoryConfig, load_config
from .logging import JSONLLogger
from .memory import Memory, MemoryManager, MemoryProfile, MemoryStore, create_memory_registry
from .tools import ToolRegistry

logger = logging.getLogger(__name__)


class MemoryPlugin:
    """Local memory for an agent host."""

    def __init__(
        self,
        config: MemoryConfig | None = None,
        event_log: JSONLLogger | None = None,
    ) -> None:
        """Open the store described by ``config``.

        Args:
            config: Memory configuration. Defaults to MemoryConfig().
            event_log: Optional structured event log shared by hooks and tools.

        Raises:
            StorageUnavailable: If the database cannot be opened.
        """
        self.config = config or MemoryConfig()
        self.event_log = event_log
        assert self.config.db_path is not None
        self.store = MemoryStore(self.config.db_path)
        self.manager = MemoryManager(self.store, self.config, event_log=event_log)

    @classmethod
    def from_config_file(
        cls,
        config_path: Path | None = None,
        event_log: JSONLLogger | None = None,
    ) -> MemoryPlugin:
        """Create a plugin from the ``memory`` section of a config file."""
        return cls(load_config(config_path), event_log)

    def start(self) -> MemoryProfile:
        """Report the store's state once the host is up."""
        profile = self.store.profile(recent=0)
        logger.info(
            "supermemory: initialized (%d memories, %sKB)", profile.total, profile.db_size_kb
        )
        if not self.store.index_enabled:
            logger.warning("supermemory: full-text index unavailable, using substring search")
        return profile

    def stop(self) -> None:
        """Close the store. Safe to call more than once."""
        if self.store.closed:
            return
        self.store.close()
        logger.info("supermemory: stopped")

    def before_turn(
        self, messages: list[dict[str, Any]], session_key: str = ""
    ) -> list[dict[str, Any]]:
        """Return the turn's messages with relevant memories injected."""
        return self.manager.recall(messages, session_key)

    def after_turn(self, messages: list[dict[str, Any]], session_key: str = "") -> list[Memory]:
        """Capture memorable statements from a finished turn."""
        return self.manager.capture(messages, session_key)

    def tools(self, session_key: str = "") -> ToolRegistry:
        """Build the memory tool registry for one session."""
        return create_memory_registry(
            self.store,
            session_key,
            self.config.max_recall_results,
            self.event_log,
        )

    def __enter__(self) -> MemoryPlugin:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
