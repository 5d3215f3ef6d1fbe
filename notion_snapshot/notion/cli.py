"""CLI entry point for Notion snapshots."""

import argparse
import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config.config_loader import load_config
from ..config.config_schema import AppConfig
from ..utils.logging import setup_logging
from .client import NotionClient
from .errors import RootResolutionError
from .history import (
    HistoryError,
    diff_latest,
    latest_scan_dir,
    list_snapshots,
    read_snapshot_key,
    snap,
)
from .models import RootKind, TraversalProgress
from .normalizer import normalize
from .traversal import ContentTraverser
from .writer import write_outputs

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

ID_PATTERN = re.compile(
    r"^([0-9a-f]{32}|[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})$",
    re.IGNORECASE,
)
PLACEHOLDER_IDS = {
    "YOUR_RICH_TEMPLATE_PAGE_ID",
    "your_template_id",
    "YOUR_PAGE_ID",
    "PAGE_ID",
    "INSERT_PAGE_ID",
}

logger = logging.getLogger(__name__)


def validate_notion_id(value: Optional[str]) -> bool:
    """Check that a value looks like a real page or database ID."""
    if not value or value in PLACEHOLDER_IDS:
        return False
    return bool(ID_PATTERN.match(value))


def mask_id(value: str) -> str:
    """Hide the first and last four characters of an ID for logs."""
    if not value or len(value) < 9:
        return "********"
    return f"****{value[4:-4]}****"


def _concurrency(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("concurrency must be at least 1")
    return number


def _non_negative(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError("value must be 0 or greater")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description="Snapshot the structure and content of a Notion page or database",
        prog="notion-snapshot",
    )

    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to configuration file (optional; environment variables apply on top)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv, -vvv)",
    )

    subparsers = parser.add_subparsers(dest="command")

    scan = subparsers.add_parser("scan", help="Scan a page or database and write outputs")
    scan.add_argument("--page-id", help="Root page or database ID (default: PAGE_ID)")
    scan.add_argument("--concurrency", type=_concurrency, help="Parallel branch limit")
    scan.add_argument(
        "--include-row-values",
        dest="include_row_values",
        action="store_true",
        default=None,
        help="Capture sample rows of every database",
    )
    scan.add_argument(
        "--no-include-row-values",
        dest="include_row_values",
        action="store_false",
        help="Skip database sample rows",
    )
    scan.add_argument(
        "--include-comments",
        action="store_true",
        default=None,
        help="Collect comments of the start page",
    )
    scan.add_argument(
        "--max-blocks", type=_non_negative, help="Stop listing blocks after N (0 = unlimited)"
    )
    scan.add_argument("--out", help="Output directory (default: outputs)")

    what_id = subparsers.add_parser("what-id", help="Tell whether an ID is a page or a database")
    what_id.add_argument("id", help="Notion ID to check")

    history = subparsers.add_parser("history", help="Snapshot and diff scan outputs")
    history.add_argument("action", choices=["snap", "diff", "list"])

    latest = subparsers.add_parser("latest-scan", help="Print the newest scan directory")
    latest.add_argument("directory", nargs="?", default="scans")

    return parser


def print_progress(progress: TraversalProgress) -> None:
    """Print progress line."""
    status = (
        f"\rPages: {progress.pages_found} | Databases: {progress.databases_processed}"
        f" | Blocks: {progress.blocks_fetched}"
    )
    if progress.current_page_title:
        # Truncate long titles
        title = progress.current_page_title
        if len(title) > 40:
            title = title[:37] + "..."
        status += f" | Current: {title}"
    print(status, end="", flush=True)


def _scan_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    updates: Dict[str, Any] = {}
    for name in ("concurrency", "include_row_values", "include_comments", "max_blocks"):
        value = getattr(args, name, None)
        if value is not None:
            updates[name] = value
    return updates


async def run_scan(args: argparse.Namespace, config: AppConfig) -> int:
    """
    Scan a root and write every output document.

    Args:
        args: Parsed command line arguments
        config: Loaded configuration

    Returns:
        Exit code
    """
    notion_updates = {"root_id": args.page_id} if args.page_id else {}
    config = config.model_copy(
        update={
            "notion": config.notion.model_copy(update=notion_updates),
            "scan": config.scan.model_copy(update=_scan_overrides(args)),
        }
    )

    try:
        config.validate()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    root_id = config.notion.root_id
    if not validate_notion_id(root_id):
        print(
            "Error: Invalid Notion ID. Expected a 32-character hex ID or a dashed UUID.",
            file=sys.stderr,
        )
        return EXIT_USAGE

    out_dir = args.out or config.output.directory
    logger.info(f"Scanning root {mask_id(root_id)} into {out_dir}")

    client = NotionClient(api_key=config.notion.api_key, max_in_flight=config.scan.concurrency)
    progress_callback = print_progress if args.verbose >= 1 else None
    traverser = ContentTraverser(
        client, scan_config=config.scan, progress_callback=progress_callback
    )

    try:
        result = await traverser.scan(root_id)
    except RootResolutionError as e:
        print(f"Error: Could not resolve {mask_id(root_id)}: {e.diagnostic}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        await client.close()

    # Clear progress line
    if progress_callback:
        print()

    normalized = normalize(result)
    write_outputs(result, normalized, out_dir)

    stats = result.stats
    print(f"Root: {result.root_kind.value} - {result.root_title}")
    print(
        f"Pages: {len(normalized.pages)} | Databases: {len(normalized.databases)}"
        f" | Images: {len(normalized.media)} | Blocks: {stats.blocks_fetched}"
    )
    if stats.truncations:
        print(f"Truncated listings: {stats.truncations} (max blocks {config.scan.max_blocks})")
    if stats.failures:
        print(f"Failures: {stats.failures}")
        if args.verbose >= 2:
            for database_id in stats.failed_databases:
                print(f"  - database {database_id}")
            for block_id in stats.failed_branches:
                print(f"  - branch {block_id}")
    print(f"Outputs written to {out_dir}")
    return EXIT_OK


async def run_what_id(args: argparse.Namespace, config: AppConfig) -> int:
    """Report whether an ID resolves as a page or a database."""
    if not config.notion.api_key:
        print("Error: Notion API key not configured", file=sys.stderr)
        return EXIT_FAILURE

    client = NotionClient(api_key=config.notion.api_key, max_in_flight=1)
    try:
        root = await ContentTraverser(client, scan_config=config.scan).detect_root(args.id)
    finally:
        await client.close()

    if root.kind is RootKind.PAGE:
        print("Type: PAGE")
        print(f"Title: {root.title}")
        return EXIT_OK
    if root.kind is RootKind.DATABASE:
        print("Type: DATABASE")
        print(f"Title: {root.title}")
        if root.parent_page_id:
            print(f"Parent page: {root.parent_page_id}")
        return EXIT_OK

    print(RootResolutionError(args.id, root.error).diagnostic, file=sys.stderr)
    return EXIT_FAILURE


def run_history(args: argparse.Namespace, config: AppConfig) -> int:
    """Run a snapshot history action."""
    outputs_dir = config.output.directory
    history_dir = config.output.history_directory
    try:
        if args.action == "snap":
            target = snap(outputs_dir, history_dir)
            print(f"Snapshot: {target}")
        elif args.action == "list":
            key = read_snapshot_key(outputs_dir)
            snapshots = list_snapshots(Path(history_dir) / key)
            if not snapshots:
                print("No snapshots yet.")
            for name in snapshots:
                print(name)
        else:
            report = diff_latest(outputs_dir, history_dir)
            if report is None:
                print("No changes (need at least two snapshots).")
            elif not report:
                print("No changes.")
            else:
                print("\n".join(report))
    except HistoryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    return EXIT_OK


def run_latest_scan(args: argparse.Namespace) -> int:
    """Print the most recently modified scan directory, if any."""
    name = latest_scan_dir(args.directory)
    if name:
        print(name)
    return EXIT_OK


async def run(args: argparse.Namespace) -> int:
    """
    Dispatch a parsed command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code (0 success, 1 failure, 2 usage)
    """
    if args.command == "latest-scan":
        return run_latest_scan(args)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        return EXIT_FAILURE
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.command == "scan":
        return await run_scan(args, config)
    if args.command == "what-id":
        return await run_what_id(args, config)
    if args.command == "history":
        return run_history(args, config)
    return EXIT_USAGE


def main(argv: Optional[List[str]] = None):
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(EXIT_USAGE)

    # Setup logging based on verbosity
    setup_logging(verbosity=args.verbose)

    try:
        exit_code = asyncio.run(run(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nScan cancelled by user")
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
