"""Memory configuration loader.

Loads configuration from the ``memory`` section of
~/.supermemory/config.json, with environment variable overrides.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

APP_DIR = Path.home() / ".supermemory"
DEFAULT_CONFIG_PATH = APP_DIR / "config.json"
DEFAULT_DB_PATH = APP_DIR / "memories.db"
DEFAULT_MAX_RECALL_RESULTS = 5

ENV_DB_PATH = "SUPERMEMORY_DB_PATH"
ENV_DEBUG = "SUPERMEMORY_DEBUG"

# Config keys accepted in either snake_case or the plugin's camelCase
_KEY_ALIASES = {
    "dbPath": "db_path",
    "autoRecall": "auto_recall",
    "autoCapture": "auto_capture",
    "maxRecallResults": "max_recall_results",
}


@dataclass
class MemoryConfig:
    """Configuration for the memory engine.

    Attributes:
        db_path: Location of the SQLite database file.
        auto_recall: Inject relevant memories before each turn.
        auto_capture: Extract and store memories after each turn.
        max_recall_results: Maximum memories injected per recall.
        debug: Emit debug events to the log. Does not change behavior.
    """

    db_path: Path | None = None
    auto_recall: bool = True
    auto_capture: bool = True
    max_recall_results: int = DEFAULT_MAX_RECALL_RESULTS
    debug: bool = False

    def __post_init__(self) -> None:
        """Validate config and set defaults."""
        if self.db_path is None:
            self.db_path = DEFAULT_DB_PATH
        else:
            self.db_path = Path(self.db_path).expanduser()

        if self.max_recall_results < 1:
            raise ValueError("max_recall_results must be at least 1")


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
    return default


def parse_config(data: dict[str, Any]) -> MemoryConfig:
    """Parse a raw ``memory`` config section into MemoryConfig.

    Invalid values are ignored in favor of defaults.

    Args:
        data: Raw mapping, keys in snake_case or camelCase.

    Returns:
        MemoryConfig instance.
    """
    raw = {_KEY_ALIASES.get(k, k): v for k, v in data.items()}

    db_path: Path | None = None
    if isinstance(raw.get("db_path"), str) and raw["db_path"].strip():
        db_path = Path(raw["db_path"]).expanduser()

    max_results = raw.get("max_recall_results", DEFAULT_MAX_RECALL_RESULTS)
    if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 1:
        max_results = DEFAULT_MAX_RECALL_RESULTS

    return MemoryConfig(
        db_path=db_path,
        auto_recall=_as_bool(raw.get("auto_recall"), True),
        auto_capture=_as_bool(raw.get("auto_capture"), True),
        max_recall_results=max_results,
        debug=_as_bool(raw.get("debug"), False),
    )


def apply_env_overrides(config: MemoryConfig) -> MemoryConfig:
    """Apply SUPERMEMORY_* environment variables on top of a config."""
    db_path = os.getenv(ENV_DB_PATH)
    if db_path:
        config.db_path = Path(db_path).expanduser()

    debug = os.getenv(ENV_DEBUG)
    if debug is not None:
        config.debug = _as_bool(debug, config.debug)

    return config


def load_config(config_path: Path | None = None) -> MemoryConfig:
    """Load MemoryConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "memory": {
        "db_path": "~/.supermemory/memories.db",
        "auto_recall": true,
        "auto_capture": true,
        "max_recall_results": 5,
        "debug": false
      }
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        MemoryConfig instance with loaded values and environment overrides.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return apply_env_overrides(MemoryConfig())

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return apply_env_overrides(MemoryConfig())
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return apply_env_overrides(MemoryConfig())

    section = data.get("memory", {}) if isinstance(data, dict) else {}
    if not isinstance(section, dict):
        logger.warning("Ignoring non-object 'memory' section in %s", path)
        section = {}

    return apply_env_overrides(parse_config(section))


def save_config(config: MemoryConfig, config_path: Path | None = None) -> None:
    """Save MemoryConfig to a JSON file.

    Other top-level sections already present in the file are preserved.

    Args:
        config: The config to save.
        config_path: Path to write to. Uses DEFAULT_CONFIG_PATH if None.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    # Ensure parent directory exists
    path.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                existing = json.load(f)
            if isinstance(existing, dict):
                data = existing
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Overwriting unreadable config %s: %s", path, e)

    data["memory"] = {
        "db_path": str(config.db_path),
        "auto_recall": config.auto_recall,
        "auto_capture": config.auto_capture,
        "max_recall_results": config.max_recall_results,
        "debug": config.debug,
    }

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise
