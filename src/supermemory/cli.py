"""CLI commands for inspecting and managing the memory store.

Provides subcommands for searching, storing, forgetting and profiling
memories, plus rebuilding the full-text index.
"""

import argparse
import sys
from pathlib import Path

from .config import load_config
from .logging import get_logger
from .memory import Category, MemoryManager, MemoryStore, MemoryStoreError

PREVIEW_LENGTH = 70


def _open_store(args: argparse.Namespace) -> MemoryStore:
    """Open the store at --db, or at the configured path."""
    if args.db:
        return MemoryStore(Path(args.db))
    config = load_config()
    assert config.db_path is not None
    return MemoryStore(config.db_path)


def _format_category(category: Category) -> str:
    """Format category for display with color hints."""
    colors = {
        Category.PREFERENCE: "\033[35m",  # magenta
        Category.FACT: "\033[34m",        # blue
        Category.DECISION: "\033[33m",    # yellow
        Category.ENTITY: "\033[32m",      # green
    }
    reset = "\033[0m"
    color = colors.get(category, "")
    return f"{color}{category.value}{reset}"


def _preview(content: str) -> str:
    content = " ".join(content.split())
    if len(content) > PREVIEW_LENGTH:
        return content[: PREVIEW_LENGTH - 3] + "..."
    return content


def cmd_search(args: argparse.Namespace) -> int:
    """Search memories."""
    store = _open_store(args)
    try:
        results = store.search(args.query, args.limit)
    finally:
        store.close()

    if not results:
        print("No memories found.")
        return 0

    for memory in results:
        print(f"{memory.id:<28} {_format_category(memory.category):<19} {_preview(memory.content)}")

    print(f"\nFound: {len(results)} memory(ies)")
    return 0


def cmd_store(args: argparse.Namespace) -> int:
    """Store an explicit memory."""
    store = _open_store(args)
    try:
        manager = MemoryManager(store, event_log=get_logger())
        memory = manager.remember(args.content, args.category, args.session)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    finally:
        store.close()

    if memory is None:
        print("Error: Memory content cannot be empty.")
        return 1

    print(f"Stored {memory.id} [{memory.category.value}]")
    return 0


def cmd_forget(args: argparse.Namespace) -> int:
    """Forget memories by id or keyword."""
    store = _open_store(args)
    try:
        deleted = store.forget(args.target)
    finally:
        store.close()
    get_logger().log_forget(args.target, deleted)

    if deleted == 0:
        print(f"Nothing stored matching '{args.target}'.")
        return 1

    print(f"Forgot {deleted} memory(ies).")
    return 0


def cmd_profile(args: argparse.Namespace) -> int:
    """Show memory statistics."""
    store = _open_store(args)
    try:
        profile = store.profile(recent=args.recent)
    finally:
        store.close()

    print(f"\nTotal: {profile.total} memory(ies), {profile.db_size_kb} KB")
    if profile.by_category:
        print(f"\n{'Category':<12} Count")
        print("-" * 20)
        for category, count in sorted(profile.by_category.items()):
            print(f"{category:<12} {count}")

    if profile.recent:
        print("\nRecent:")
        for memory in profile.recent:
            print(f"  {memory.created_at[:19]}  [{memory.category.value}] {_preview(memory.content)}")
    return 0


def cmd_reindex(args: argparse.Namespace) -> int:
    """Rebuild the full-text index from stored memories."""
    store = _open_store(args)
    try:
        if not store.index_enabled:
            print("Error: Full-text search is not available in this SQLite build.")
            return 1
        store.rebuild_index()
        healthy = store.check_index()
    finally:
        store.close()

    print("Index rebuilt." if healthy else "Index rebuilt, but the integrity check failed.")
    return 0 if healthy else 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the memory CLI."""
    parser = argparse.ArgumentParser(
        prog="supermemory",
        description="Manage the local memory store",
    )
    parser.add_argument("--db", help="Path to the memory database (overrides config)")

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    search_parser = subparsers.add_parser("search", help="Search memories")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument(
        "-n", "--limit",
        type=int,
        default=5,
        help="Maximum results (default: 5)",
    )

    store_parser = subparsers.add_parser("store", help="Store a memory")
    store_parser.add_argument("content", help="The information to remember")
    store_parser.add_argument(
        "-c", "--category",
        choices=[c.value for c in Category],
        help="Category (inferred if omitted)",
    )
    store_parser.add_argument(
        "-s", "--session",
        default="",
        help="Session key to attribute the memory to",
    )

    forget_parser = subparsers.add_parser("forget", help="Forget memories by id or keyword")
    forget_parser.add_argument("target", help="Memory id or keyword")

    profile_parser = subparsers.add_parser("profile", help="Show memory statistics")
    profile_parser.add_argument(
        "-n", "--recent",
        type=int,
        default=5,
        help="Number of recent memories to show (default: 5)",
    )

    subparsers.add_parser("reindex", help="Rebuild the full-text index")

    return parser


def run_cli(argv: list[str] | None = None) -> int:
    """Run the memory CLI with given arguments.

    Args:
        argv: Command-line arguments. Uses sys.argv[1:] if None.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "search": cmd_search,
        "store": cmd_store,
        "forget": cmd_forget,
        "profile": cmd_profile,
        "reindex": cmd_reindex,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except MemoryStoreError as e:
        print(f"Error: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(run_cli())
