"""Memory tools for explicit search, storage and removal."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..tools.base import Tool, ToolResult
from ..tools.registry import ToolRegistry
from .classifier import classify
from .models import Category
from .store import MemoryStore

if TYPE_CHECKING:
    from ..logging import JSONLLogger

PROFILE_PREVIEW_LENGTH = 120


class MemorySearchTool(Tool):
    """Tool for searching the local memory store."""

    def __init__(self, store: MemoryStore, default_limit: int = 5) -> None:
        """Initialize with a memory store.

        Args:
            store: The MemoryStore to search.
            default_limit: Result cap when the caller gives none.
        """
        self.store = store
        self.default_limit = default_limit

    @property
    def name(self) -> str:
        return "memory_search"

    @property
    def description(self) -> str:
        return "Search your local memory store for relevant information."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "limit": {
                    "type": "integer",
                    "description": f"Max results (default: {self.default_limit})",
                },
            },
            "required": ["query"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        query = kwargs.get("query", "")
        limit = kwargs.get("limit") or self.default_limit

        results = self.store.search(query, limit)
        if not results:
            return ToolResult(
                success=True,
                output=f"No memories found for '{query}'",
                metadata={"results": [], "total": 0, "query": query},
            )

        lines = [f"- [{m.category.value}] {m.content} ({m.id})" for m in results]
        return ToolResult(
            success=True,
            output="\n".join(lines),
            metadata={
                "results": [
                    {
                        "id": m.id,
                        "content": m.content,
                        "category": m.category.value,
                        "created_at": m.created_at,
                    }
                    for m in results
                ],
                "total": len(results),
                "query": query,
            },
        )


class MemoryStoreTool(Tool):
    """Tool for saving an explicit memory."""

    def __init__(self, store: MemoryStore, session_key: str = "") -> None:
        """Initialize with a memory store.

        Args:
            store: The MemoryStore for persistence.
            session_key: Session that stored memories are attributed to.
        """
        self.store = store
        self.session_key = session_key

    @property
    def name(self) -> str:
        return "memory_store"

    @property
    def description(self) -> str:
        return (
            "Store information in your local memory. "
            "Use when the user explicitly asks to remember something."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The information to remember",
                },
                "category": {
                    "type": "string",
                    "enum": [c.value for c in Category],
                    "description": "Category (inferred from the content if omitted)",
                },
            },
            "required": ["content"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        content = kwargs.get("content", "")
        if not content or not content.strip():
            return ToolResult(success=False, output="", error="'content' is required")

        category = kwargs.get("category")
        try:
            cat = Category.parse(category) if category else classify(content)
        except ValueError as e:
            return ToolResult(success=False, output="", error=str(e))

        memory = self.store.create(content, cat, self.session_key, {"source": "explicit"})
        if memory is None:
            return ToolResult(success=False, output="", error="Nothing was stored")

        return ToolResult(
            success=True,
            output=f"Remembered [{cat.value}]: {memory.content}",
            metadata={"id": memory.id, "category": cat.value},
        )


class MemoryForgetTool(Tool):
    """Tool for removing memories by id or keyword."""

    def __init__(self, store: MemoryStore, event_log: JSONLLogger | None = None) -> None:
        self.store = store
        self.event_log = event_log

    @property
    def name(self) -> str:
        return "memory_forget"

    @property
    def description(self) -> str:
        return (
            "Delete memories by ID or keyword. A keyword removes every memory "
            "containing it, ignoring case."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "target": {
                    "type": "string",
                    "description": "Memory ID or keyword",
                },
            },
            "required": ["target"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        target = kwargs.get("target", "")
        if not target or not target.strip():
            return ToolResult(success=False, output="", error="'target' is required")

        deleted = self.store.forget(target)
        if self.event_log is not None:
            self.event_log.log_forget(target, deleted)
        if deleted == 0:
            return ToolResult(
                success=False,
                output=f"Nothing stored matching '{target}'",
                metadata={"deleted": 0},
            )

        noun = "memory" if deleted == 1 else "memories"
        return ToolResult(
            success=True,
            output=f"Forgot {deleted} {noun} matching '{target}'",
            metadata={"deleted": deleted},
        )


class MemoryProfileTool(Tool):
    """Tool for showing memory statistics."""

    def __init__(self, store: MemoryStore) -> None:
        self.store = store

    @property
    def name(self) -> str:
        return "memory_profile"

    @property
    def description(self) -> str:
        return "Show memory stats: total, categories, DB size."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs: Any) -> ToolResult:
        profile = self.store.profile()
        categories = ", ".join(f"{k}: {v}" for k, v in profile.by_category.items()) or "none"
        lines = [
            f"Total memories: {profile.total}",
            f"Categories: {categories}",
            f"Database size: {profile.db_size_kb} KB",
        ]
        recent = [
            {
                "id": m.id,
                "content": m.content[:PROFILE_PREVIEW_LENGTH],
                "category": m.category.value,
                "created_at": m.created_at,
            }
            for m in profile.recent
        ]
        if recent:
            lines.append("Recent:")
            lines.extend(f"- [{r['category']}] {r['content']}" for r in recent)

        return ToolResult(
            success=True,
            output="\n".join(lines),
            metadata={
                "total": profile.total,
                "categories": profile.by_category,
                "db_size_kb": profile.db_size_kb,
                "recent": recent,
            },
        )


def create_memory_tools(
    store: MemoryStore,
    session_key: str = "",
    default_limit: int = 5,
    event_log: JSONLLogger | None = None,
) -> list[Tool]:
    """Build the full set of memory tools bound to one store and session."""
    return [
        MemorySearchTool(store, default_limit),
        MemoryStoreTool(store, session_key),
        MemoryForgetTool(store, event_log),
        MemoryProfileTool(store),
    ]


def create_memory_registry(
    store: MemoryStore,
    session_key: str = "",
    default_limit: int = 5,
    event_log: JSONLLogger | None = None,
) -> ToolRegistry:
    """Build a registry holding the memory tools for one session.

    Args:
        store: The MemoryStore the tools operate on.
        session_key: Session that explicitly stored memories are attributed to.
        default_limit: Search result cap when the caller gives none.
        event_log: Optional structured event log for tool calls and forgets.

    Returns:
        ToolRegistry with memory_search, memory_store, memory_forget and
        memory_profile registered.
    """
    registry = ToolRegistry(event_log=event_log, session_key=session_key)
    registry.register_all(create_memory_tools(store, session_key, default_limit, event_log))
    return registry
