"""Memory module: local storage, classification, extraction and recall."""

from .classifier import CLASSIFICATION_RULES, ClassificationRule, classify
from .extractor import MemoryExtractor, conversation_text, strip_injected_context
from .manager import MemoryManager
from .models import Category, Memory, MemoryProfile
from .store import (
    IndexCorrupt,
    MemoryStore,
    MemoryStoreError,
    StorageError,
    StorageUnavailable,
    StoreClosedError,
)
from .tools import (
    MemoryForgetTool,
    MemoryProfileTool,
    MemorySearchTool,
    MemoryStoreTool,
    create_memory_registry,
    create_memory_tools,
)

__all__ = [
    "CLASSIFICATION_RULES",
    "Category",
    "ClassificationRule",
    "IndexCorrupt",
    "Memory",
    "MemoryExtractor",
    "MemoryForgetTool",
    "MemoryManager",
    "MemoryProfile",
    "MemoryProfileTool",
    "MemorySearchTool",
    "MemoryStore",
    "MemoryStoreError",
    "MemoryStoreTool",
    "StorageError",
    "StorageUnavailable",
    "StoreClosedError",
    "classify",
    "conversation_text",
    "create_memory_registry",
    "create_memory_tools",
    "strip_injected_context",
]
