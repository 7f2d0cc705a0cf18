"""Configuration for the globwatch package."""

import os
import sys
from dataclasses import dataclass, field


def _default_use_polling() -> bool:
    # Native recursive watching is only reliable on Windows and macOS.
    return sys.platform not in ("win32", "darwin")


@dataclass
class WatchConfig:
    """
    Configuration options for watched file notifications.

    Attributes:
        queue_timeout_ms: Delay between the first queued change and the batch being sent
        recursive: Whether directories are watched recursively
        use_polling: Use a polling observer instead of native OS notifications
        polling_interval_s: Seconds between directory scans when polling
        join_timeout_s: Seconds to wait for an observer thread to stop
    """
    queue_timeout_ms: int = 100
    recursive: bool = True
    use_polling: bool = field(default_factory=_default_use_polling)
    polling_interval_s: float = 1.0
    join_timeout_s: float = 5.0

    @classmethod
    def from_env(cls) -> "WatchConfig":
        """
        Create a configuration with overrides from the environment.

        Reads GLOBWATCH_QUEUE_TIMEOUT_MS, GLOBWATCH_USE_POLLING and
        GLOBWATCH_POLLING_INTERVAL.
        """
        config = cls()
        if "GLOBWATCH_QUEUE_TIMEOUT_MS" in os.environ:
            config.queue_timeout_ms = int(os.environ["GLOBWATCH_QUEUE_TIMEOUT_MS"])
        if "GLOBWATCH_USE_POLLING" in os.environ:
            config.use_polling = os.environ["GLOBWATCH_USE_POLLING"].lower() in ("1", "true", "yes")
        if "GLOBWATCH_POLLING_INTERVAL" in os.environ:
            config.polling_interval_s = float(os.environ["GLOBWATCH_POLLING_INTERVAL"])
        return config
