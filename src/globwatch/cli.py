"""
Command line interface for globwatch.

Usage:
    python -m globwatch match "**/*.py" src/app/main.py
    python -m globwatch watch --root ./project --glob "**/*.py" --glob "*.toml"
"""

import argparse
import json
import logging
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional

from .config import WatchConfig
from .exceptions import PatternSyntaxError
from .models import (
    FileSystemWatcher,
    Registration,
    RelativePattern,
    WatchClient,
    WatchKind,
    WorkspaceFolder,
)
from .patterns import parse
from .registration import WatchedFilesManager

logger = logging.getLogger("globwatch.cli")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True


def cmd_match(args) -> int:
    """Test paths against a glob."""
    try:
        matcher = parse(args.pattern)
    except PatternSyntaxError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    all_matched = True
    for path in args.paths:
        matched = matcher.matches(path)
        all_matched = all_matched and matched
        print(f"{path}: {'match' if matched else 'no match'}")
    return 0 if all_matched else 1


def cmd_watch(args) -> int:
    """Watch roots and print each batch of changes as a JSON line."""
    config = WatchConfig.from_env()
    if args.polling:
        config.use_polling = True
    if args.delay is not None:
        config.queue_timeout_ms = args.delay

    folders = [
        WorkspaceFolder(uri=Path(root).resolve().as_uri(), name=Path(root).resolve().name)
        for root in args.root
    ]

    def notify(method: str, params: dict) -> None:
        print(json.dumps(params), flush=True)

    client = WatchClient(
        client_id=1,
        notify=notify,
        workspace_folders=folders,
        dynamic_registration=True,
    )
    registration = Registration(
        id="cli",
        watchers=tuple(
            FileSystemWatcher(RelativePattern(folder, glob), WatchKind(args.kind))
            for folder in folders
            for glob in args.glob
        ),
    )

    manager = WatchedFilesManager(config=config)
    try:
        manager.register(registration, client)
    except PatternSyntaxError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    shutdown = GracefulShutdown()
    logger.info(f"Watching {len(folders)} root(s), press Ctrl+C to stop")
    try:
        while not shutdown.should_exit:
            time.sleep(0.2)
    finally:
        manager.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="globwatch",
        description="Glob based file change notifications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    match_parser = subparsers.add_parser("match", help="Test paths against a glob")
    match_parser.add_argument("pattern", help="Glob pattern")
    match_parser.add_argument("paths", nargs="+", help="Paths to test")

    watch_parser = subparsers.add_parser("watch", help="Print batches of matching changes")
    watch_parser.add_argument("--root", action="append", required=True, help="Root directory to watch")
    watch_parser.add_argument("--glob", action="append", required=True, help="Glob relative to each root")
    watch_parser.add_argument("--kind", type=int, default=int(WatchKind.ALL),
                              help="Change kinds: 1 create, 2 change, 4 delete (default: 7)")
    watch_parser.add_argument("--delay", type=int, help="Batch delay in ms")
    watch_parser.add_argument("--polling", action="store_true", help="Use the polling observer")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command == "match":
        return cmd_match(args)
    return cmd_watch(args)


if __name__ == "__main__":
    sys.exit(main())
