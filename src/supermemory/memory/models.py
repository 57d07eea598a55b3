"""Data models for the memory system."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Category(str, Enum):
    """Coarse semantic tag attached to every memory."""

    PREFERENCE = "preference"
    FACT = "fact"
    DECISION = "decision"
    ENTITY = "entity"
    OTHER = "other"

    @classmethod
    def parse(cls, value: "Category | str") -> "Category":
        """Coerce a category name (case-insensitive) into a Category.

        Raises:
            ValueError: If the name is not a known category.
        """
        if isinstance(value, Category):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = ", ".join(c.value for c in cls)
            raise ValueError(f"Unknown category '{value}' (expected one of: {names})") from None


@dataclass(frozen=True)
class Memory:
    """A remembered piece of text.

    Attributes:
        id: Opaque identifier, stable for the record's lifetime.
        content: The memory body.
        category: Category assigned at creation.
        session_key: Originating session, empty for session-less memories.
        created_at: ISO timestamp when created.
        metadata: Arbitrary side-data, persisted as JSON.
    """

    id: str
    content: str
    category: Category
    session_key: str = ""
    created_at: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        return {
            "id": self.id,
            "content": self.content,
            "category": self.category.value,
            "session_key": self.session_key,
            "created_at": self.created_at,
            "metadata": dict(self.metadata),
        }


@dataclass
class MemoryProfile:
    """Aggregate view over the live memories in a store."""

    total: int
    by_category: dict[str, int] = field(default_factory=dict)
    db_size_kb: float = 0.0
    recent: list[Memory] = field(default_factory=list)
