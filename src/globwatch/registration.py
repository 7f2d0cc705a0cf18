"""Dynamic registration of watched file notifications."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .coalescer import EventCoalescer
from .config import WatchConfig
from .fs_watcher import CancelFunc, DirectoryWatcher, WatchCallback, WatchOptions
from .matchers import PATH_SEPARATOR, Literal, union_all
from .models import (
    DID_CHANGE_WATCHED_FILES,
    FileEvent,
    RawChangeKind,
    Registration,
    Unregistration,
    WatchClient,
    WatchEntry,
    to_file_change_type,
)
from .patterns import DEFAULT_EXCLUDE, parse
from .uris import uri_from_path

logger = logging.getLogger(__name__)

WatchFunc = Callable[[str, WatchOptions, WatchCallback], CancelFunc]


@dataclass
class _Subscription:
    """Watches installed by one register call."""
    cancels: List[CancelFunc] = field(default_factory=list)
    active: bool = True

    def cancel(self) -> None:
        self.active = False
        while self.cancels:
            self.cancels.pop()()


def _directory_prefix(base_dir: str) -> str:
    return base_dir if base_dir.endswith(PATH_SEPARATOR) else base_dir + PATH_SEPARATOR


class WatchedFilesManager:
    """
    Turns watched file registrations into directory watches.

    Each registration is compiled into one list of (matcher, kind) entries
    per base directory. One recursive watch is installed per directory,
    pre-filtered by the union of that directory's matchers and the default
    excludes. Matching events are forwarded to the coalescer, which sends
    them to the subscriber in batches.
    """

    def __init__(
        self,
        coalescer: Optional[EventCoalescer] = None,
        watch_func: Optional[WatchFunc] = None,
        config: Optional[WatchConfig] = None,
    ):
        """
        Initialize the manager.

        Args:
            coalescer: Batches matched changes; created from config if omitted
            watch_func: Directory watch primitive; a watchdog based
                DirectoryWatcher is used if omitted
            config: Watch configuration
        """
        self.config = config or WatchConfig()
        self.coalescer = coalescer or EventCoalescer(self.config.queue_timeout_ms)
        self._watcher: Optional[DirectoryWatcher] = None
        if watch_func is None:
            self._watcher = DirectoryWatcher(self.config)
            watch_func = self._watcher.watch
        self._watch_func = watch_func
        # client id -> registration id -> subscriptions
        self._subscriptions: Dict[int, Dict[str, List[_Subscription]]] = {}
        self._lock = threading.RLock()

    def register(self, registration: Registration, client: WatchClient) -> None:
        """
        Install the watches of a registration.

        Every pattern is compiled before any watch is installed, so a
        malformed pattern leaves nothing behind.

        Args:
            registration: The registration request
            client: The subscriber

        Raises:
            PatternSyntaxError: If a declared glob is malformed
            WatchError: If a directory cannot be watched
        """
        # Misbehaving subscribers may register even though they did not enable the feature.
        if not client.dynamic_registration or not client.workspace_folders:
            logger.debug(
                f"Ignoring registration {registration.id} from client {client.client_id}: "
                f"dynamic registration disabled or no workspace folders"
            )
            return

        watch_regs = self._compile(registration, client)
        subscription = _Subscription()

        try:
            for base_dir, entries in watch_regs.items():
                # The include filter lets any of the directory's patterns through;
                # the callback still has to pick the pattern and kind that apply.
                options = WatchOptions(
                    recursive=self.config.recursive,
                    include=union_all(entry.matcher for entry in entries),
                    exclude=DEFAULT_EXCLUDE,
                )
                callback = self._callback(client, entries, subscription)
                subscription.cancels.append(self._watch_func(base_dir, options, callback))
        except Exception:
            subscription.cancel()
            raise

        with self._lock:
            client_regs = self._subscriptions.setdefault(client.client_id, {})
            client_regs.setdefault(registration.id, []).append(subscription)

        logger.info(
            f"Registered {registration.id} for client {client.client_id}: "
            f"{len(registration.watchers)} watcher(s) in {len(watch_regs)} director(ies)"
        )

    def _compile(self, registration: Registration, client: WatchClient) -> Dict[str, List[WatchEntry]]:
        """Compile the declared globs and group them by base directory."""
        watch_regs: Dict[str, List[WatchEntry]] = {}
        base_dirs = client.base_directories()

        for watcher in registration.watchers:
            glob_pattern = watcher.glob_pattern
            if isinstance(glob_pattern, str):
                matcher = parse(glob_pattern)
                for base_dir in base_dirs:
                    watch_regs.setdefault(base_dir, []).append(WatchEntry(matcher, watcher.kind))
            else:
                base_dir = glob_pattern.base_path
                matcher = Literal(_directory_prefix(base_dir)) + parse(glob_pattern.pattern)
                watch_regs.setdefault(base_dir, []).append(WatchEntry(matcher, watcher.kind))

        return watch_regs

    def _callback(
        self,
        client: WatchClient,
        entries: List[WatchEntry],
        subscription: _Subscription,
    ) -> WatchCallback:
        def callback(path: str, raw_kind: RawChangeKind) -> None:
            change_type = to_file_change_type(raw_kind)
            if not subscription.active:
                return
            for entry in entries:
                if entry.accepts(path, change_type):
                    logger.debug(f"{path} matched for client {client.client_id} ({change_type.name})")
                    self.coalescer.submit(client, FileEvent(uri_from_path(path), change_type))
                    # One notification per event, even if several watchers match.
                    break

        return callback

    def unregister(self, unregistration: Unregistration, client_id: int) -> None:
        """
        Cancel the watches of a registration. Unknown ids are ignored.

        Changes already queued for the subscriber are still sent.

        Args:
            unregistration: The unregistration request
            client_id: The subscriber
        """
        with self._lock:
            client_regs = self._subscriptions.get(client_id)
            if client_regs is None:
                return
            subscriptions = client_regs.pop(unregistration.id, [])
            if not client_regs:
                del self._subscriptions[client_id]

        for subscription in subscriptions:
            subscription.cancel()

        if subscriptions:
            logger.info(f"Unregistered {unregistration.id} for client {client_id}")

    def registrations(self, client_id: int) -> List[str]:
        """Get the active registration ids of a subscriber."""
        with self._lock:
            return list(self._subscriptions.get(client_id, {}))

    def handle_register_capability(self, params: dict, client: WatchClient) -> None:
        """
        Handle the params of a client/registerCapability request.

        Only registrations of workspace/didChangeWatchedFiles are processed.
        """
        for data in params.get("registrations", []):
            if data.get("method") != DID_CHANGE_WATCHED_FILES:
                logger.debug(f"Skipping registration of {data.get('method')}")
                continue
            self.register(Registration.from_dict(data), client)

    def handle_unregister_capability(self, params: dict, client_id: int) -> None:
        """Handle the params of a client/unregisterCapability request."""
        # The protocol spells this key "unregisterations".
        entries = params.get("unregisterations", params.get("unregistrations", []))
        for data in entries:
            if data.get("method") != DID_CHANGE_WATCHED_FILES:
                continue
            self.unregister(Unregistration.from_dict(data), client_id)

    def close(self) -> None:
        """Cancel every watch and send any pending changes."""
        with self._lock:
            all_regs = list(self._subscriptions.values())
            self._subscriptions.clear()

        for client_regs in all_regs:
            for subscriptions in client_regs.values():
                for subscription in subscriptions:
                    subscription.cancel()

        if self._watcher is not None:
            self._watcher.stop_all()
        self.coalescer.flush_all()
