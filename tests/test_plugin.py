"""Tests for the host-facing memory plugin."""

import json
from pathlib import Path

import pytest

from supermemory.config import MemoryConfig
from supermemory.logging import JSONLLogger
from supermemory.memory import Category
from supermemory.plugin import MemoryPlugin


@pytest.fixture
def event_log(tmp_path: Path) -> JSONLLogger:
    return JSONLLogger(log_dir=tmp_path / "logs")


@pytest.fixture
def plugin(tmp_path: Path, event_log: JSONLLogger) -> MemoryPlugin:
    """Create a started plugin backed by a temporary database."""
    plugin = MemoryPlugin(MemoryConfig(db_path=tmp_path / "plugin.db"), event_log)
    plugin.start()
    yield plugin
    plugin.stop()


class TestMemoryPluginLifecycle:
    """Tests for start and stop."""

    def test_start_reports_profile(self, plugin: MemoryPlugin):
        plugin.store.create("The sky is blue", Category.FACT)
        profile = plugin.start()
        assert profile.total == 1
        assert profile.recent == []

    def test_stop_closes_store_once(self, plugin: MemoryPlugin):
        plugin.stop()
        plugin.stop()
        assert plugin.store.closed

    def test_context_manager(self, tmp_path: Path):
        with MemoryPlugin(MemoryConfig(db_path=tmp_path / "ctx.db")) as plugin:
            assert not plugin.store.closed
        assert plugin.store.closed

    def test_from_config_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("SUPERMEMORY_DB_PATH", raising=False)
        monkeypatch.delenv("SUPERMEMORY_DEBUG", raising=False)
        config_path = tmp_path / "config.json"
        db_path = tmp_path / "from-file.db"
        config_path.write_text(
            json.dumps({"memory": {"dbPath": str(db_path), "maxRecallResults": 2}})
        )

        plugin = MemoryPlugin.from_config_file(config_path)

        assert plugin.store.db_path == db_path
        assert plugin.tools().get("memory_search").default_limit == 2
        plugin.stop()


class TestMemoryPluginHooks:
    """Tests for the per-turn hooks."""

    def test_turn_round_trip(self, plugin: MemoryPlugin, event_log: JSONLLogger):
        turn = [
            {"role": "user", "content": "I prefer to deploy on Fridays."},
            {"role": "assistant", "content": "Got it."},
        ]
        stored = plugin.after_turn(turn, "chat-1")

        messages = [{"role": "user", "content": "When should we deploy?"}]
        injected = plugin.before_turn(messages, "chat-1")

        assert [m.session_key for m in stored] == ["chat-1"]
        assert injected[0]["role"] == "system"
        assert "deploy on Fridays" in injected[0]["content"]
        with open(event_log.log_path) as f:
            events = [json.loads(line)["event"] for line in f]
        assert events == ["store", "capture", "recall"]

    def test_hooks_respect_flags(self, tmp_path: Path):
        config = MemoryConfig(db_path=tmp_path / "off.db", auto_recall=False, auto_capture=False)
        with MemoryPlugin(config) as plugin:
            turn = [{"role": "user", "content": "I prefer to deploy on Fridays."}]
            assert plugin.after_turn(turn) == []
            assert plugin.before_turn(turn) is turn
            assert plugin.store.count() == 0


class TestMemoryPluginTools:
    """Tests for the per-session tool registry."""

    @pytest.mark.asyncio
    async def test_tools_bound_to_session(self, plugin: MemoryPlugin):
        registry = plugin.tools("chat-2")

        result = await registry.dispatch("memory_store", {"content": "Acme", "category": "entity"})

        assert result.success
        assert plugin.store.get(result.metadata["id"]).session_key == "chat-2"

    @pytest.mark.asyncio
    async def test_sessions_do_not_share_state(self, plugin: MemoryPlugin):
        first = plugin.tools("chat-a")
        second = plugin.tools("chat-b")

        a = await first.dispatch("memory_store", {"content": "Alpha team owns billing"})
        b = await second.dispatch("memory_store", {"content": "Beta team owns search"})

        assert plugin.store.get(a.metadata["id"]).session_key == "chat-a"
        assert plugin.store.get(b.metadata["id"]).session_key == "chat-b"
