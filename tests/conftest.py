"""Shared fixtures for globwatch tests."""

import pytest


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


class FakeTimerFactory:
    """Creates FakeTimers and remembers them."""

    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    def armed(self):
        return [t for t in self.timers if t.started and not t.cancelled]

    def fire_all(self):
        for timer in self.armed():
            timer.fire()


class RecordingClient:
    """Collects the notifications sent to a subscriber."""

    def __init__(self):
        self.notifications = []

    def __call__(self, method, params):
        self.notifications.append((method, params))

    @property
    def changes(self):
        return [c for _, params in self.notifications for c in params["changes"]]


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def recorder():
    return RecordingClient()
