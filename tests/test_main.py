"""Tests for the console entry point."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from supermemory.config import MemoryConfig
from supermemory.main import main


@pytest.mark.parametrize("debug, level", [(True, logging.DEBUG), (False, logging.WARNING)])
def test_debug_flag_from_config(tmp_path: Path, debug: bool, level: int) -> None:
    """The configured debug flag drives both the log level and the event log."""
    config = MemoryConfig(db_path=tmp_path / "main.db", debug=debug)

    with (
        patch("supermemory.main.load_dotenv"),
        patch("supermemory.main.load_config", return_value=config),
        patch("logging.basicConfig") as basic_config,
        patch("supermemory.main.configure_logger") as configure_logger,
        patch("supermemory.main.run_cli", return_value=0) as run_cli,
        patch("sys.argv", ["supermemory", "profile"]),
    ):
        with pytest.raises(SystemExit) as exc_info:
            main()

    assert exc_info.value.code == 0
    assert basic_config.call_args.kwargs["level"] == level
    configure_logger.assert_called_once_with(debug=debug)
    run_cli.assert_called_once_with(["profile"])
