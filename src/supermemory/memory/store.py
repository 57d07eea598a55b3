"""SQLite storage for memories with a synchronized FTS5 index."""

import json
import logging
import re
import sqlite3
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import Category, Memory, MemoryProfile

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"

_COLUMNS = "m.pk, m.id, m.content, m.category, m.session_key, m.created_at, m.metadata"
_NON_WORD = re.compile(r"[^\w\s]")


class MemoryStoreError(Exception):
    """Base error for memory store failures."""


class StorageUnavailable(MemoryStoreError):
    """The database file or its directory cannot be opened or created."""


class StorageError(MemoryStoreError, OSError):
    """A read or write against the database failed."""


class StoreClosedError(MemoryStoreError, RuntimeError):
    """An operation was attempted on a closed store."""


class IndexCorrupt(MemoryStoreError):
    """The full-text index query failed structurally."""


def build_match_query(query: str) -> str:
    """Build a disjunctive FTS5 query from free text.

    Punctuation is dropped, single-character words are discarded and each
    remaining word is quoted so it is matched literally.

    Returns:
        The MATCH expression, or an empty string if no usable words remain.
    """
    words = _NON_WORD.sub(" ", query).split()
    return " OR ".join(f'"{w}"' for w in words if len(w) > 1)


def _contains_ci(haystack: str | None, needle: str | None) -> int:
    """SQL function: case-insensitive substring test using casefold."""
    if haystack is None or not needle:
        return 0
    return int(needle.casefold() in haystack.casefold())


def _casefold(text: str | None) -> str | None:
    """SQL function: Unicode case folding."""
    return text.casefold() if text is not None else None


class MemoryStore:
    """Persistent storage for memories using SQLite.

    Records live in the ``memories`` table; ``memories_fts`` is an FTS5
    external-content index over ``content`` keyed by the record's ``pk``.
    Index entries are written in the same transaction as the record they
    describe: inserted after the row on create, removed before the row on
    forget.

    Substring matching (search fallback and keyword forget) is
    case-insensitive.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Open the database, creating it and its directory if needed.

        Args:
            db_path: Path to the SQLite database file, or ``":memory:"``.

        Raises:
            StorageUnavailable: If the database cannot be opened or initialized.
        """
        self.db_path = db_path if db_path == IN_MEMORY else Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None
        self._index_enabled = True
        self._last_created_at = ""

        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.create_function("contains_ci", 2, _contains_ci, deterministic=True)
            self._conn.create_function("casefold", 1, _casefold, deterministic=True)
            self.init_db()
        except (OSError, sqlite3.Error) as e:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            raise StorageUnavailable(f"Cannot open memory database at {self.db_path}: {e}") from e

    @property
    def index_enabled(self) -> bool:
        """Whether the full-text index is available."""
        return self._index_enabled

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _get_connection(self) -> sqlite3.Connection:
        """Get the open database connection."""
        if self._conn is None:
            raise StoreClosedError("Memory store is closed")
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of statements as one immediate write transaction."""
        conn = self._get_connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()

    def init_db(self) -> None:
        """Create the memories table and its index if they don't exist."""
        conn = self._get_connection()
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS memories (
                pk          INTEGER PRIMARY KEY,
                id          TEXT NOT NULL UNIQUE,
                content     TEXT NOT NULL,
                category    TEXT NOT NULL DEFAULT 'other',
                session_key TEXT NOT NULL DEFAULT '',
                created_at  TEXT NOT NULL,
                metadata    TEXT NOT NULL DEFAULT '{}'
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_memories_category ON memories(category)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_memories_session ON memories(session_key)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_memories_created ON memories(created_at)")
        try:
            conn.execute("""
                CREATE VIRTUAL TABLE IF NOT EXISTS memories_fts USING fts5(
                    content, content='memories', content_rowid='pk'
                )
            """)
        except sqlite3.OperationalError as e:
            if "no such module" not in str(e):
                raise
            logger.warning("SQLite was built without FTS5, search falls back to substring matching")
            self._index_enabled = False
        conn.commit()

    def create(
        self,
        content: str,
        category: Category | str,
        session_key: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Memory | None:
        """Persist a new memory and index it.

        Args:
            content: The memory body.
            category: Category of the memory.
            session_key: Originating session, empty if none.
            metadata: Optional side-data, must be JSON serializable.

        Returns:
            The stored memory, or None if content is blank.

        Raises:
            StorageError: If the write fails.
        """
        self._get_connection()
        if not content or not content.strip():
            return None

        memory = Memory(
            id=self._new_id(),
            content=content,
            category=Category.parse(category),
            session_key=session_key or "",
            created_at=self._next_timestamp(),
            metadata=dict(metadata or {}),
        )
        metadata_json = json.dumps(memory.metadata)

        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO memories (id, content, category, session_key, created_at, metadata)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        memory.id,
                        memory.content,
                        memory.category.value,
                        memory.session_key,
                        memory.created_at,
                        metadata_json,
                    ),
                )
                if self._index_enabled:
                    conn.execute(
                        "INSERT INTO memories_fts (rowid, content) VALUES (?, ?)",
                        (cursor.lastrowid, memory.content),
                    )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to store memory: {e}") from e

        return memory

    def search(self, query: str, limit: int = 5) -> list[Memory]:
        """Search memories, best matches first.

        Uses the full-text index when possible. If the index query fails or
        the index is unavailable, falls back to a case-insensitive substring
        match ordered newest first.

        Args:
            query: Free-text query.
            limit: Maximum number of results.

        Returns:
            Matching memories, empty for blank or unusable queries.
        """
        self._get_connection()
        if not query or not query.strip() or limit < 1:
            return []

        match = build_match_query(query)
        if not match:
            return []

        if self._index_enabled:
            try:
                return self._ranked_search(match, limit)
            except IndexCorrupt as e:
                logger.warning("Full-text search failed, using substring match: %s", e)

        return self._substring_search(query.strip(), limit)

    def _ranked_search(self, match: str, limit: int) -> list[Memory]:
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                f"""
                SELECT {_COLUMNS}
                FROM memories_fts JOIN memories m ON m.pk = memories_fts.rowid
                WHERE memories_fts MATCH ?
                ORDER BY memories_fts.rank, m.pk DESC
                LIMIT ?
                """,
                (match, limit),
            )
            return [self._row_to_memory(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise IndexCorrupt(str(e)) from e

    def _substring_search(self, needle: str, limit: int) -> list[Memory]:
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM memories m
                WHERE contains_ci(m.content, ?)
                ORDER BY m.created_at DESC, m.pk DESC
                LIMIT ?
                """,
                (needle, limit),
            )
            return [self._row_to_memory(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"Failed to search memories: {e}") from e

    def forget(self, target: str) -> int:
        """Delete a memory by id, or every memory containing a keyword.

        An exact id match deletes that single record. Otherwise every record
        whose content contains ``target`` (case-insensitively) is deleted.

        Args:
            target: A memory id or keyword.

        Returns:
            Number of memories deleted.
        """
        self._get_connection()
        if not target or not target.strip():
            return 0

        try:
            with self._transaction() as conn:
                rows = conn.execute(
                    "SELECT pk, content FROM memories WHERE id = ?", (target,)
                ).fetchall()
                if not rows:
                    rows = conn.execute(
                        "SELECT pk, content FROM memories WHERE contains_ci(content, ?)",
                        (target.strip(),),
                    ).fetchall()

                for row in rows:
                    if self._index_enabled:
                        conn.execute(
                            "INSERT INTO memories_fts (memories_fts, rowid, content) "
                            "VALUES ('delete', ?, ?)",
                            (row["pk"], row["content"]),
                        )
                    conn.execute("DELETE FROM memories WHERE pk = ?", (row["pk"],))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to forget memories: {e}") from e

        return len(rows)

    def get(self, memory_id: str) -> Memory | None:
        """Get a memory by its id."""
        row = self._fetch_one(f"SELECT {_COLUMNS} FROM memories m WHERE m.id = ?", (memory_id,))
        return self._row_to_memory(row) if row else None

    def find_exact(self, content: str) -> Memory | None:
        """Get the newest memory whose content equals ``content``, ignoring case."""
        if not content:
            self._get_connection()
            return None
        row = self._fetch_one(
            f"""
            SELECT {_COLUMNS} FROM memories m
            WHERE casefold(m.content) = casefold(?)
            ORDER BY m.created_at DESC, m.pk DESC
            LIMIT 1
            """,
            (content,),
        )
        return self._row_to_memory(row) if row else None

    def count(self) -> int:
        """Number of live memories."""
        return self._fetch_one("SELECT COUNT(*) FROM memories")[0]

    def profile(self, recent: int = 5) -> MemoryProfile:
        """Aggregate statistics over live memories.

        Args:
            recent: How many of the newest memories to include.
        """
        conn = self._get_connection()
        try:
            by_category = {
                row["category"]: row["n"]
                for row in conn.execute(
                    "SELECT category, COUNT(*) AS n FROM memories GROUP BY category ORDER BY category"
                )
            }
            page_count = conn.execute("PRAGMA page_count").fetchone()[0]
            page_size = conn.execute("PRAGMA page_size").fetchone()[0]
            rows = conn.execute(
                f"SELECT {_COLUMNS} FROM memories m ORDER BY m.created_at DESC, m.pk DESC LIMIT ?",
                (max(recent, 0),),
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read memory profile: {e}") from e

        return MemoryProfile(
            total=sum(by_category.values()),
            by_category=by_category,
            db_size_kb=round(page_count * page_size / 1024, 1),
            recent=[self._row_to_memory(row) for row in rows],
        )

    def rebuild_index(self) -> None:
        """Re-derive the full-text index from the stored records."""
        if not self._index_enabled:
            self._get_connection()
            return
        try:
            with self._transaction() as conn:
                conn.execute("INSERT INTO memories_fts (memories_fts) VALUES ('rebuild')")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to rebuild index: {e}") from e
        logger.info("Rebuilt full-text index for %d memories", self.count())

    def check_index(self) -> bool:
        """Check that the full-text index agrees with the stored records.

        Returns:
            True if the index is consistent, False if it is missing or corrupt.
        """
        conn = self._get_connection()
        if not self._index_enabled:
            return False
        try:
            conn.execute(
                "INSERT INTO memories_fts (memories_fts, rank) VALUES ('integrity-check', 1)"
            )
            conn.commit()
        except sqlite3.DatabaseError as e:
            conn.rollback()
            logger.warning("Full-text index integrity check failed: %s", e)
            return False
        return True

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _fetch_one(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Row | None:
        conn = self._get_connection()
        try:
            return conn.execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read memories: {e}") from e

    def _new_id(self) -> str:
        return f"mem_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"

    def _next_timestamp(self) -> str:
        """ISO timestamp that never goes backwards within this store."""
        now = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        if now < self._last_created_at:
            now = self._last_created_at
        self._last_created_at = now
        return now

    def _row_to_memory(self, row: sqlite3.Row) -> Memory:
        """Convert a database row to a Memory."""
        try:
            metadata = json.loads(row["metadata"])
        except (TypeError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable metadata on memory %s", row["id"])
            metadata = {}
        try:
            category = Category.parse(row["category"])
        except ValueError:
            category = Category.OTHER
        return Memory(
            id=row["id"],
            content=row["content"],
            category=category,
            session_key=row["session_key"],
            created_at=row["created_at"],
            metadata=metadata if isinstance(metadata, dict) else {},
        )
