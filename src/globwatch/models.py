"""Data models for the globwatch package."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum, IntFlag
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .exceptions import InvalidChangeTypeError
from .matchers import Matcher
from .uris import path_from_uri

DID_CHANGE_WATCHED_FILES = "workspace/didChangeWatchedFiles"


class WatchKind(IntFlag):
    """Change kinds a watcher declaration is interested in."""
    CREATE = 1
    CHANGE = 2
    DELETE = 4
    ALL = 7

    @classmethod
    def for_change_type(cls, change_type: "FileChangeType") -> "WatchKind":
        """Return the bit for a change type, e.g. DELETED (3) -> DELETE (0b100)."""
        return cls(1 << (int(change_type) - 1))


class FileChangeType(IntEnum):
    """Change types sent to subscribers."""
    CREATED = 1
    CHANGED = 2
    DELETED = 3


class RawChangeKind(Enum):
    """Change kinds reported by the directory watch primitive."""
    CREATED = "created"
    CHANGED = "changed"
    DELETED = "deleted"


_RAW_TO_FILE_CHANGE_TYPE = {
    RawChangeKind.CREATED: FileChangeType.CREATED,
    RawChangeKind.CHANGED: FileChangeType.CHANGED,
    RawChangeKind.DELETED: FileChangeType.DELETED,
}


def to_file_change_type(kind: Any) -> FileChangeType:
    """
    Translate a raw change kind into the change type sent to subscribers.

    Raises:
        InvalidChangeTypeError: If ``kind`` is not created, changed or deleted
    """
    try:
        return _RAW_TO_FILE_CHANGE_TYPE[kind]
    except (KeyError, TypeError):
        raise InvalidChangeTypeError(
            f"Must receive change type Created, Changed or Deleted, got {kind!r}"
        ) from None


@dataclass(frozen=True)
class WorkspaceFolder:
    """A workspace root as announced by the subscriber."""
    uri: str
    name: str = ""

    @property
    def path(self) -> str:
        return path_from_uri(self.uri)

    @classmethod
    def from_dict(cls, data: dict) -> "WorkspaceFolder":
        return cls(uri=data["uri"], name=data.get("name", ""))


@dataclass(frozen=True)
class RelativePattern:
    """
    A glob anchored to one base directory.

    Attributes:
        base_uri: URI of the base directory, or the workspace folder it names
        pattern: Glob relative to the base directory
    """
    base_uri: Union[str, WorkspaceFolder]
    pattern: str

    @property
    def base_path(self) -> str:
        uri = self.base_uri if isinstance(self.base_uri, str) else self.base_uri.uri
        return path_from_uri(uri)

    @classmethod
    def from_dict(cls, data: dict) -> "RelativePattern":
        base_uri = data["baseUri"]
        if not isinstance(base_uri, str):
            base_uri = WorkspaceFolder.from_dict(base_uri)
        return cls(base_uri=base_uri, pattern=data["pattern"])


@dataclass(frozen=True)
class FileSystemWatcher:
    """
    One watcher declaration of a registration.

    Attributes:
        glob_pattern: Glob applied to every workspace folder, or a relative pattern
        kind: Change kinds of interest, all of them by default
    """
    glob_pattern: Union[str, RelativePattern]
    kind: WatchKind = WatchKind.ALL

    @classmethod
    def from_dict(cls, data: dict) -> "FileSystemWatcher":
        glob_pattern = data["globPattern"]
        if not isinstance(glob_pattern, str):
            glob_pattern = RelativePattern.from_dict(glob_pattern)
        kind = data.get("kind")
        return cls(
            glob_pattern=glob_pattern,
            kind=WatchKind.ALL if kind is None else WatchKind(kind),
        )


@dataclass(frozen=True)
class Registration:
    """A dynamic registration request for watched file notifications."""
    id: str
    method: str = DID_CHANGE_WATCHED_FILES
    watchers: Tuple[FileSystemWatcher, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "Registration":
        options = data.get("registerOptions") or {}
        return cls(
            id=data["id"],
            method=data.get("method", DID_CHANGE_WATCHED_FILES),
            watchers=tuple(FileSystemWatcher.from_dict(w) for w in options.get("watchers", [])),
        )


@dataclass(frozen=True)
class Unregistration:
    """Request to drop a previous registration."""
    id: str
    method: str = DID_CHANGE_WATCHED_FILES

    @classmethod
    def from_dict(cls, data: dict) -> "Unregistration":
        return cls(id=data["id"], method=data.get("method", DID_CHANGE_WATCHED_FILES))


@dataclass(frozen=True)
class FileEvent:
    """A change to one file, as delivered to the subscriber."""
    uri: str
    type: FileChangeType

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"uri": self.uri, "type": int(self.type)}

    @classmethod
    def from_dict(cls, data: dict) -> "FileEvent":
        """Create from dictionary."""
        return cls(uri=data["uri"], type=FileChangeType(data["type"]))


@dataclass
class WatchedFilesParams:
    """One batch of changes sent in a single notification."""
    changes: List[FileEvent] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self):
        return iter(self.changes)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"changes": [c.to_dict() for c in self.changes]}


@dataclass(frozen=True)
class WatchEntry:
    """A compiled watcher declaration within one base directory."""
    matcher: Matcher
    kind: WatchKind

    def accepts(self, path: str, change_type: FileChangeType) -> bool:
        """Check both the change kind mask and the path."""
        mask = WatchKind.for_change_type(change_type)
        return (self.kind & mask) == mask and self.matcher.matches(path)


@dataclass
class WatchClient:
    """
    A subscriber of watched file notifications.

    Attributes:
        client_id: Identifier of the subscriber
        notify: Transport callable taking (method, params)
        workspace_folders: Workspace roots, None if the subscriber has none
        dynamic_registration: Whether the subscriber enabled dynamic registration
    """
    client_id: int
    notify: Callable[[str, Dict[str, Any]], None]
    workspace_folders: Optional[List[WorkspaceFolder]] = None
    dynamic_registration: bool = False

    def base_directories(self) -> List[str]:
        """Return the workspace folders as filesystem paths."""
        return [folder.path for folder in self.workspace_folders or []]
