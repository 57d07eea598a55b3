"""Tests for MemoryStore."""

from pathlib import Path
from unittest.mock import patch

import pytest

from supermemory.memory import (
    Category,
    MemoryStore,
    StorageError,
    StorageUnavailable,
    StoreClosedError,
)
from supermemory.memory.store import build_match_query


@pytest.fixture
def store(tmp_path: Path) -> MemoryStore:
    """Create a MemoryStore with a temporary database."""
    db_path = tmp_path / "test_memory.db"
    store = MemoryStore(db_path)
    yield store
    store.close()


def fts_rows(store: MemoryStore) -> int:
    """Count documents held by the full-text index itself."""
    conn = store._get_connection()
    return conn.execute("SELECT COUNT(*) FROM memories_fts_docsize").fetchone()[0]


class TestMemoryStoreInit:
    """Tests for MemoryStore initialization."""

    def test_creates_db_directory(self, tmp_path: Path):
        """Store creates parent directories if they don't exist."""
        nested_path = tmp_path / "nested" / "dir" / "memory.db"
        store = MemoryStore(nested_path)
        assert nested_path.exists()
        store.close()

    def test_creates_tables(self, store: MemoryStore):
        """The record table and the full-text index exist."""
        conn = store._get_connection()
        names = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert "memories" in names
        assert "memories_fts" in names

    def test_no_triggers(self, store: MemoryStore):
        """Index maintenance is explicit, not trigger-driven."""
        conn = store._get_connection()
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='trigger'")
        assert cursor.fetchall() == []

    def test_init_db_idempotent(self, store: MemoryStore):
        """init_db can be called multiple times."""
        store.init_db()
        store.init_db()  # Should not raise

    def test_unopenable_path_raises(self, tmp_path: Path):
        """A path whose parent is a file cannot be opened."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(StorageUnavailable):
            MemoryStore(blocker / "memory.db")

    def test_reopen_keeps_memories(self, tmp_path: Path):
        """Memories persist across store instances."""
        db_path = tmp_path / "memory.db"
        first = MemoryStore(db_path)
        memory = first.create("I prefer espresso over filter coffee", Category.PREFERENCE)
        first.close()

        second = MemoryStore(db_path)
        assert second.get(memory.id) == memory
        assert [m.id for m in second.search("espresso")] == [memory.id]
        second.close()

    def test_in_memory_database(self):
        store = MemoryStore(":memory:")
        store.create("The build server is named Hal", Category.ENTITY)
        assert store.count() == 1
        store.close()


class TestMemoryStoreCreate:
    """Tests for creating memories."""

    def test_create_returns_memory(self, store: MemoryStore):
        memory = store.create("The sky is blue", Category.FACT, "chat-1")
        assert memory.id.startswith("mem_")
        assert memory.content == "The sky is blue"
        assert memory.category is Category.FACT
        assert memory.session_key == "chat-1"
        assert memory.created_at
        assert memory.metadata == {}

    def test_create_accepts_category_name(self, store: MemoryStore):
        memory = store.create("We picked SQLite", "decision")
        assert memory.category is Category.DECISION

    def test_create_rejects_unknown_category(self, store: MemoryStore):
        with pytest.raises(ValueError):
            store.create("We picked SQLite", "verdict")
        assert store.count() == 0

    def test_create_persists_metadata(self, store: MemoryStore):
        memory = store.create("Deploys happen on Tuesdays", Category.FACT, metadata={"source": "explicit"})
        assert store.get(memory.id).metadata == {"source": "explicit"}

    def test_blank_content_is_noop(self, store: MemoryStore):
        assert store.create("", Category.OTHER) is None
        assert store.create("   ", Category.OTHER) is None
        assert store.count() == 0

    def test_ids_are_unique(self, store: MemoryStore):
        ids = {store.create(f"note number {i}", Category.OTHER).id for i in range(50)}
        assert len(ids) == 50

    def test_created_at_non_decreasing(self, store: MemoryStore):
        stamps = [store.create(f"note number {i}", Category.OTHER).created_at for i in range(20)]
        assert stamps == sorted(stamps)

    def test_created_at_never_goes_backwards(self, store: MemoryStore):
        """A clock step backwards does not reorder memories."""
        first = store.create("first note", Category.OTHER)
        store._last_created_at = "9999-01-01T00:00:00.000000+00:00"
        second = store.create("second note", Category.OTHER)
        assert second.created_at >= first.created_at
        assert second.created_at == "9999-01-01T00:00:00.000000+00:00"

    def test_create_indexes_record(self, store: MemoryStore):
        store.create("Alpha record", Category.OTHER)
        store.create("Beta record", Category.OTHER)
        assert fts_rows(store) == 2
        assert store.check_index()

    def test_write_failure_raises_storage_error(self, store: MemoryStore):
        """Storage failures propagate instead of being swallowed."""
        store._get_connection().execute("DROP TABLE memories_fts")
        with pytest.raises(StorageError):
            store.create("Gamma record", Category.OTHER)
        # The record insert was rolled back with the failed index write
        assert store.count() == 0


class TestMemoryStoreSearch:
    """Tests for searching memories."""

    def test_finds_by_word(self, store: MemoryStore):
        memory = store.create("I prefer dark mode in every editor", Category.PREFERENCE)
        store.create("The office is in Berlin", Category.FACT)
        results = store.search("dark")
        assert [m.id for m in results] == [memory.id]

    def test_fresh_record_is_top_result(self, store: MemoryStore):
        """A memory is searchable immediately after creation."""
        store.create("Lunch is at noon", Category.FACT)
        memory = store.create("The staging cluster runs Nomad", Category.FACT)
        results = store.search("staging Nomad", 1)
        assert results[0].id == memory.id

    def test_disjunctive_query(self, store: MemoryStore):
        a = store.create("Python is my main language", Category.FACT)
        b = store.create("Rust is used for the parser", Category.FACT)
        store.create("Lunch is at noon", Category.FACT)
        ids = {m.id for m in store.search("python rust")}
        assert ids == {a.id, b.id}

    def test_case_insensitive_words(self, store: MemoryStore):
        memory = store.create("Postgres stores the invoices", Category.FACT)
        assert [m.id for m in store.search("POSTGRES")] == [memory.id]

    def test_respects_limit(self, store: MemoryStore):
        for i in range(10):
            store.create(f"Coffee note {i}", Category.OTHER)
        assert len(store.search("coffee", 3)) == 3

    def test_zero_limit(self, store: MemoryStore):
        store.create("Coffee note", Category.OTHER)
        assert store.search("coffee", 0) == []

    @pytest.mark.parametrize("query", ["", "   ", "!!!", "a b c", "? !"])
    def test_unusable_queries_return_empty(self, store: MemoryStore, query: str):
        store.create("a b c !!! something", Category.OTHER)
        assert store.search(query) == []

    def test_empty_query_does_not_touch_storage(self, store: MemoryStore):
        with patch.object(store, "_ranked_search") as ranked, patch.object(
            store, "_substring_search"
        ) as substring:
            assert store.search("   ") == []
        ranked.assert_not_called()
        substring.assert_not_called()

    @pytest.mark.parametrize("query", ['"unbalanced', 'dark" OR', "NEAR(dark", "dark AND", "*"])
    def test_odd_queries_do_not_raise(self, store: MemoryStore, query: str):
        store.create("I prefer dark mode", Category.PREFERENCE)
        results = store.search(query)
        assert isinstance(results, list)
        assert len(results) <= 5

    def test_fallback_when_index_unavailable(self, store: MemoryStore):
        """If the index query fails, substring search is used, newest first."""
        old = store.create("Deploy notes: use blue-green", Category.FACT)
        other = store.create("Unrelated entry", Category.OTHER)
        new = store.create("More DEPLOY notes for Friday", Category.FACT)
        store._get_connection().execute("DROP TABLE memories_fts")

        results = store.search("deploy", 5)

        assert [m.id for m in results] == [new.id, old.id]
        assert other.id not in {m.id for m in results}

    def test_fallback_is_bounded(self, store: MemoryStore):
        for i in range(8):
            store.create(f"deploy step {i}", Category.OTHER)
        store._get_connection().execute("DROP TABLE memories_fts")

        results = store.search("deploy", 3)

        assert [m.content for m in results] == ["deploy step 7", "deploy step 6", "deploy step 5"]

    def test_no_fts5_module_uses_substring(self, store: MemoryStore):
        """A store without FTS5 still answers searches."""
        memory = store.create("Invoices live in Postgres", Category.FACT)
        store._index_enabled = False
        assert [m.id for m in store.search("postgres")] == [memory.id]

    def test_result_fields_round_trip(self, store: MemoryStore):
        memory = store.create(
            "Our team ships on Thursdays", Category.FACT, "chat-9", {"turn": 3}
        )
        assert store.search("Thursdays") == [memory]


class TestMemoryStoreForget:
    """Tests for forgetting memories."""

    def test_forget_by_id(self, store: MemoryStore):
        memory = store.create("I prefer dark mode", Category.PREFERENCE)
        keep = store.create("I prefer dark chocolate", Category.PREFERENCE)

        assert store.forget(memory.id) == 1

        assert store.get(memory.id) is None
        assert [m.id for m in store.search("dark")] == [keep.id]
        assert store.profile().total == 1

    def test_forget_removes_index_entry(self, store: MemoryStore):
        memory = store.create("Alpha record", Category.OTHER)
        store.forget(memory.id)
        assert fts_rows(store) == 0
        assert store.check_index()

    def test_forget_by_keyword(self, store: MemoryStore):
        store.create("The Payments service is in Go", Category.FACT)
        store.create("payments run nightly", Category.FACT)
        keep = store.create("Search runs on Elastic", Category.FACT)

        assert store.forget("payments") == 2

        assert store.count() == 1
        assert store.search("payments") == []
        assert store.get(keep.id) is not None

    def test_keyword_is_case_insensitive(self, store: MemoryStore):
        store.create("Deadline is FRIDAY", Category.FACT)
        assert store.forget("friday") == 1

    def test_keyword_matches_substring(self, store: MemoryStore):
        store.create("Kubernetes cluster config", Category.FACT)
        assert store.forget("bernet") == 1

    def test_id_match_wins_over_keyword(self, store: MemoryStore):
        """An exact id deletes only that record, even if others mention it."""
        target = store.create("first record", Category.OTHER)
        store.create(f"see also {target.id}", Category.OTHER)
        assert store.forget(target.id) == 1
        assert store.count() == 1

    def test_forget_nothing_matches(self, store: MemoryStore):
        store.create("Alpha record", Category.OTHER)
        assert store.forget("omega") == 0
        assert store.count() == 1

    def test_blank_target_deletes_nothing(self, store: MemoryStore):
        store.create("Alpha record", Category.OTHER)
        assert store.forget("") == 0
        assert store.forget("   ") == 0
        assert store.count() == 1

    def test_forgotten_never_returned(self, store: MemoryStore):
        memories = [store.create(f"shared topic item {i}", Category.OTHER) for i in range(3)]
        store.forget(memories[1].id)
        for query in ("shared", "topic item", memories[1].content):
            assert memories[1].id not in {m.id for m in store.search(query, 10)}

    def test_failed_forget_rolls_back(self, store: MemoryStore):
        """A failure mid-forget leaves both record and index entry in place."""
        memory = store.create("Alpha record", Category.OTHER)
        conn = store._get_connection()
        conn.execute("CREATE TRIGGER block_delete BEFORE DELETE ON memories BEGIN SELECT RAISE(ABORT, 'blocked'); END")

        with pytest.raises(StorageError):
            store.forget(memory.id)

        conn.execute("DROP TRIGGER block_delete")
        assert store.get(memory.id) is not None
        assert fts_rows(store) == 1
        assert store.check_index()


class TestMemoryStoreProfile:
    """Tests for aggregate statistics."""

    def test_empty_profile(self, store: MemoryStore):
        profile = store.profile()
        assert profile.total == 0
        assert profile.by_category == {}
        assert profile.recent == []
        assert profile.db_size_kb > 0

    def test_counts_by_category(self, store: MemoryStore):
        store.create("I prefer tea", Category.PREFERENCE)
        store.create("I like rain", Category.PREFERENCE)
        store.create("We picked Redis", Category.DECISION)
        store.create("Random words", Category.OTHER)

        profile = store.profile()

        assert profile.total == 4
        assert profile.by_category == {"decision": 1, "other": 1, "preference": 2}
        assert sum(profile.by_category.values()) == profile.total

    def test_recent_newest_first(self, store: MemoryStore):
        created = [store.create(f"note number {i}", Category.OTHER) for i in range(7)]
        profile = store.profile(recent=3)
        assert [m.id for m in profile.recent] == [m.id for m in reversed(created[-3:])]

    def test_reflects_forgotten(self, store: MemoryStore):
        store.create("I prefer tea", Category.PREFERENCE)
        memory = store.create("We picked Redis", Category.DECISION)
        store.forget(memory.id)
        profile = store.profile()
        assert profile.total == 1
        assert "decision" not in profile.by_category


class TestMemoryStoreFindExact:
    """Tests for exact, case-insensitive content lookup."""

    def test_matches_ignoring_case(self, store: MemoryStore):
        memory = store.create("I always use vim for editing", Category.PREFERENCE)
        found = store.find_exact("i ALWAYS use VIM for editing")
        assert found is not None
        assert found.id == memory.id

    def test_ignores_containing_memories(self, store: MemoryStore):
        store.create("I always use vim for editing at work", Category.PREFERENCE)
        assert store.find_exact("I always use vim for editing") is None

    def test_picks_exact_over_newer_superset(self, store: MemoryStore):
        exact = store.create("I always use vim for editing", Category.PREFERENCE)
        store.create("I always use vim for editing at work and home", Category.PREFERENCE)
        found = store.find_exact("I always use vim for editing")
        assert found is not None
        assert found.id == exact.id

    def test_works_without_index(self, store: MemoryStore):
        store._index_enabled = False
        memory = store.create("Straße names are tricky", Category.FACT)
        found = store.find_exact("STRASSE NAMES ARE TRICKY")
        assert found is not None
        assert found.id == memory.id

    def test_empty_content(self, store: MemoryStore):
        store.create("Something stored", Category.OTHER)
        assert store.find_exact("") is None


class TestMemoryStoreIndex:
    """Tests for index maintenance helpers."""

    def test_rebuild_restores_search(self, store: MemoryStore):
        memory = store.create("Rebuild me please", Category.OTHER)
        conn = store._get_connection()
        conn.execute("INSERT INTO memories_fts (memories_fts) VALUES ('delete-all')")
        conn.commit()
        assert store.search("rebuild") == []

        store.rebuild_index()

        assert [m.id for m in store.search("rebuild")] == [memory.id]
        assert store.check_index()

    def test_check_index_without_fts(self, store: MemoryStore):
        store._index_enabled = False
        assert store.check_index() is False


class TestMemoryStoreClose:
    """Tests for closing the store."""

    def test_close_idempotent(self, store: MemoryStore):
        store.close()
        store.close()
        assert store.closed

    @pytest.mark.parametrize(
        "call",
        [
            lambda s: s.create("text here", Category.OTHER),
            lambda s: s.search("text"),
            lambda s: s.search(""),
            lambda s: s.forget("text"),
            lambda s: s.profile(),
            lambda s: s.get("mem_1"),
            lambda s: s.find_exact("text"),
            lambda s: s.find_exact(""),
            lambda s: s.count(),
        ],
    )
    def test_operations_after_close_fail(self, store: MemoryStore, call):
        store.close()
        with pytest.raises(StoreClosedError):
            call(store)

    def test_closed_error_is_runtime_error(self, store: MemoryStore):
        store.close()
        with pytest.raises(RuntimeError):
            store.count()


class TestBuildMatchQuery:
    """Tests for full-text query construction."""

    def test_quotes_and_ors_words(self):
        assert build_match_query("dark mode") == '"dark" OR "mode"'

    def test_drops_punctuation_and_single_chars(self):
        assert build_match_query('I "love" it, x!') == '"love" OR "it"'

    def test_keywords_are_quoted(self):
        assert build_match_query("NOT this") == '"NOT" OR "this"'

    def test_nothing_usable(self):
        assert build_match_query("!!! ? a") == ""
