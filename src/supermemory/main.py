"""Supermemory entry point."""

import logging
import sys

from dotenv import find_dotenv, load_dotenv

from .cli import run_cli
from .config import load_config
from .logging import configure_logger


def main() -> None:
    """Main entry point."""
    load_dotenv(find_dotenv(usecwd=True))

    config = load_config()
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    configure_logger(debug=config.debug)

    sys.exit(run_cli(sys.argv[1:]))


if __name__ == "__main__":
    main()
