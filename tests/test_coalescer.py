"""Tests for coalescer module."""

import logging
import threading
import time

import pytest

from globwatch.coalescer import EventCoalescer
from globwatch.models import DID_CHANGE_WATCHED_FILES, FileChangeType, FileEvent, WatchClient

URI_A = "file:///ws/a.py"
URI_B = "file:///ws/b.py"


def make_client(notify, client_id=1):
    return WatchClient(client_id=client_id, notify=notify, dynamic_registration=True)


class TestEventCoalescer:
    """Tests for EventCoalescer class."""

    def test_duplicates_collapse(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        results = [
            coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
            for _ in range(5)
        ]

        assert results == [True, False, False, False, False]
        assert coalescer.pending(1) == [FileEvent(URI_A, FileChangeType.CHANGED)]
        assert len(timers.timers) == 1

    def test_kind_transition_queues_both(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        coalescer.submit(client, FileEvent(URI_A, FileChangeType.DELETED))

        assert coalescer.pending(1) == [
            FileEvent(URI_A, FileChangeType.CHANGED),
            FileEvent(URI_A, FileChangeType.DELETED),
        ]

    def test_only_consecutive_duplicates_suppressed(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        coalescer.submit(client, FileEvent(URI_A, FileChangeType.DELETED))
        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))

        assert len(coalescer.pending(1)) == 3

    def test_files_tracked_separately(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        coalescer.submit(client, FileEvent(URI_B, FileChangeType.CHANGED))

        assert len(coalescer.pending(1)) == 2

    def test_timer_armed_once_with_delay(self, timers, recorder):
        coalescer = EventCoalescer(delay_ms=100, timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CREATED))
        coalescer.submit(client, FileEvent(URI_B, FileChangeType.CREATED))

        assert len(timers.timers) == 1
        timer = timers.timers[0]
        assert timer.interval == pytest.approx(0.1)
        assert timer.started
        assert timer.daemon
        assert coalescer.is_armed(1)

    def test_flush_sends_one_notification(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CREATED))
        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        coalescer.submit(client, FileEvent(URI_B, FileChangeType.DELETED))
        timers.fire_all()

        assert recorder.notifications == [(DID_CHANGE_WATCHED_FILES, {"changes": [
            {"uri": URI_A, "type": 1},
            {"uri": URI_A, "type": 2},
            {"uri": URI_B, "type": 3},
        ]})]

    def test_flush_clears_state(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        timers.fire_all()

        assert coalescer.pending(1) == []
        assert not coalescer.is_armed(1)
        assert len(coalescer) == 0

    def test_fresh_window_after_flush(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        timers.timers[0].fire()

        assert coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED)) is True
        assert len(timers.timers) == 2
        timers.timers[1].fire()

        assert len(recorder.notifications) == 2
        assert recorder.changes == [
            {"uri": URI_A, "type": 2},
            {"uri": URI_A, "type": 2},
        ]

    def test_clients_are_independent(self, timers):
        first = []
        second = []
        coalescer = EventCoalescer(timer_factory=timers)
        client1 = make_client(lambda m, p: first.append(p), client_id=1)
        client2 = make_client(lambda m, p: second.append(p), client_id=2)

        coalescer.submit(client1, FileEvent(URI_A, FileChangeType.CHANGED))
        coalescer.submit(client2, FileEvent(URI_A, FileChangeType.CHANGED))
        assert len(timers.timers) == 2

        timers.timers[0].fire()

        assert first == [{"changes": [{"uri": URI_A, "type": 2}]}]
        assert second == []
        assert coalescer.pending(2) == [FileEvent(URI_A, FileChangeType.CHANGED)]

    def test_flush_all(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        count = coalescer.flush_all()

        assert count == 1
        assert len(recorder.notifications) == 1
        assert timers.timers[0].cancelled

    def test_stale_timer_does_not_flush_new_window(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        coalescer.flush_all()
        coalescer.submit(client, FileEvent(URI_B, FileChangeType.CHANGED))

        timers.timers[0].fire()

        assert len(recorder.notifications) == 1
        assert coalescer.pending(1) == [FileEvent(URI_B, FileChangeType.CHANGED)]

    def test_cancel_all(self, timers, recorder):
        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(recorder)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        coalescer.cancel_all()

        assert recorder.notifications == []
        assert timers.timers[0].cancelled
        assert len(coalescer) == 0

    def test_transport_error_is_logged(self, timers, caplog):
        def failing_notify(method, params):
            raise RuntimeError("connection closed")

        coalescer = EventCoalescer(timer_factory=timers)
        client = make_client(failing_notify)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CHANGED))
        with caplog.at_level(logging.ERROR, logger="globwatch.coalescer"):
            timers.fire_all()

        assert "Failed to notify client 1" in caplog.text
        assert len(coalescer) == 0

    def test_real_timer(self):
        received = []
        done = threading.Event()

        def notify(method, params):
            received.append(params)
            done.set()

        coalescer = EventCoalescer(delay_ms=20)
        client = make_client(notify)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CREATED))

        assert done.wait(timeout=2.0)
        assert received == [{"changes": [{"uri": URI_A, "type": 1}]}]
        assert not coalescer.is_armed(1)

    def test_slow_transport_keeps_batches_in_order(self):
        delivered = []
        in_flight = [0]
        peak = [0]
        lock = threading.Lock()
        first_started = threading.Event()
        done = threading.Event()

        def notify(method, params):
            uri = params["changes"][0]["uri"]
            with lock:
                in_flight[0] += 1
                peak[0] = max(peak[0], in_flight[0])
            if uri == URI_A:
                first_started.set()
                time.sleep(0.4)
            with lock:
                in_flight[0] -= 1
                delivered.append(uri)
                if len(delivered) == 2:
                    done.set()

        coalescer = EventCoalescer(delay_ms=50)
        client = make_client(notify)

        coalescer.submit(client, FileEvent(URI_A, FileChangeType.CREATED))
        assert first_started.wait(timeout=2.0)
        coalescer.submit(client, FileEvent(URI_B, FileChangeType.DELETED))

        assert done.wait(timeout=3.0)
        assert delivered == [URI_A, URI_B]
        assert peak[0] == 1
