"""
globwatch

Watched file notifications for workspace protocol clients: subscribers
declare glob patterns, and filesystem changes matching them are delivered
in deduplicated batches.

Features:
- Glob compiler with *, **, ?, [a-z], [!a-z] and {a,b} alternation
- Composable matchers (union, sequence, difference)
- Dynamic registration and unregistration per subscriber
- Recursive directory watching via watchdog, with default excludes
- Per-subscriber batching with duplicate suppression
"""

from .models import (
    DID_CHANGE_WATCHED_FILES,
    WatchKind,
    FileChangeType,
    RawChangeKind,
    WorkspaceFolder,
    RelativePattern,
    FileSystemWatcher,
    Registration,
    Unregistration,
    FileEvent,
    WatchedFilesParams,
    WatchEntry,
    WatchClient,
)

from .config import WatchConfig

from .exceptions import (
    GlobWatchError,
    PatternSyntaxError,
    InvalidChangeTypeError,
    WatchError,
)

from .matchers import Matcher, NEVER, union, sequence, union_all
from .patterns import parse, match, DEFAULT_EXCLUDE
from .fs_watcher import DirectoryWatcher, WatchOptions
from .coalescer import EventCoalescer
from .registration import WatchedFilesManager


__all__ = [
    # Models
    "DID_CHANGE_WATCHED_FILES",
    "WatchKind",
    "FileChangeType",
    "RawChangeKind",
    "WorkspaceFolder",
    "RelativePattern",
    "FileSystemWatcher",
    "Registration",
    "Unregistration",
    "FileEvent",
    "WatchedFilesParams",
    "WatchEntry",
    "WatchClient",
    # Config
    "WatchConfig",
    # Exceptions
    "GlobWatchError",
    "PatternSyntaxError",
    "InvalidChangeTypeError",
    "WatchError",
    # Patterns
    "Matcher",
    "NEVER",
    "union",
    "sequence",
    "union_all",
    "parse",
    "match",
    "DEFAULT_EXCLUDE",
    # Components
    "DirectoryWatcher",
    "WatchOptions",
    "EventCoalescer",
    "WatchedFilesManager",
]

__version__ = "0.1.0"
