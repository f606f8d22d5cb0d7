"""Unit tests for todohub.realtime.relay — EventRelay in sync and thread modes."""

import threading

import pytest

from todohub.realtime.events import EventKind, MutationEvent
from todohub.realtime.relay import EventRelay


class TestSyncMode:

    def test_delivers_inline(self):
        relay = EventRelay(mode="sync")
        seen = []
        relay.subscribe(EventKind.CREATED, seen.append)
        assert relay.publish(EventKind.CREATED, {"id": 1}) is True
        assert len(seen) == 1
        assert isinstance(seen[0], MutationEvent)
        assert seen[0].payload == {"id": 1}
        assert seen[0].timestamp is not None

    def test_only_matching_kind(self):
        relay = EventRelay(mode="sync")
        seen = []
        relay.subscribe(EventKind.DELETED, seen.append)
        relay.publish(EventKind.CREATED, {})
        assert seen == []

    def test_no_listeners(self):
        assert EventRelay(mode="sync").publish(EventKind.UPDATED, {}) is True

    def test_failing_handler_isolated(self):
        relay = EventRelay(mode="sync")
        seen = []

        def broken(event):
            raise RuntimeError("listener bug")

        relay.subscribe(EventKind.CREATED, broken)
        relay.subscribe(EventKind.CREATED, seen.append)
        assert relay.publish(EventKind.CREATED, {"id": 1}) is True
        assert len(seen) == 1
        assert relay.handler_failures == 1

    def test_unsubscribe(self):
        relay = EventRelay(mode="sync")
        seen = []
        relay.subscribe(EventKind.CREATED, seen.append)
        assert relay.unsubscribe(EventKind.CREATED, seen.append) is True
        assert relay.unsubscribe(EventKind.CREATED, seen.append) is False
        relay.publish(EventKind.CREATED, {})
        assert seen == []
        assert relay.handlers_for(EventKind.CREATED) == []

    def test_flush_and_start_are_noops(self):
        relay = EventRelay(mode="sync")
        relay.start()
        assert relay.is_running is False
        assert relay.flush() is True

    def test_invalid_mode(self):
        with pytest.raises(ValueError, match="thread/sync"):
            EventRelay(mode="async")


class TestThreadMode:

    def test_fifo_delivery(self):
        relay = EventRelay(mode="thread", poll_interval=0.01)
        seen = []
        relay.subscribe(EventKind.UPDATED, lambda e: seen.append(e.payload["n"]))
        try:
            for n in range(200):
                relay.publish(EventKind.UPDATED, {"n": n})
            assert relay.flush(timeout=5.0) is True
        finally:
            relay.stop()
        assert seen == list(range(200))

    def test_publish_auto_starts(self):
        relay = EventRelay(mode="thread", poll_interval=0.01)
        try:
            relay.publish(EventKind.CREATED, {})
            assert relay.is_running is True
            assert relay.mode == "thread"
        finally:
            relay.stop()
        assert relay.is_running is False

    def test_delivered_on_worker_thread(self):
        relay = EventRelay(mode="thread", poll_interval=0.01)
        threads = []
        relay.subscribe(EventKind.CREATED, lambda e: threads.append(threading.current_thread().name))
        try:
            relay.publish(EventKind.CREATED, {})
            relay.flush()
        finally:
            relay.stop()
        assert threads == ["todohub-event-relay"]

    def test_publish_does_not_wait_for_handlers(self):
        relay = EventRelay(mode="thread", poll_interval=0.01)
        gate = threading.Event()
        relay.subscribe(EventKind.CREATED, lambda e: gate.wait(2.0))
        try:
            assert relay.publish(EventKind.CREATED, {}) is True
            assert relay.publish(EventKind.CREATED, {}) is True
            gate.set()
            assert relay.flush(timeout=5.0) is True
        finally:
            gate.set()
            relay.stop()

    def test_stop_drains_queue(self):
        relay = EventRelay(mode="thread", poll_interval=0.01)
        seen = []
        relay.subscribe(EventKind.DELETED, seen.append)
        relay.start()
        relay.stop()
        relay._queue.put_nowait(MutationEvent(EventKind.DELETED, {"id": 1}))
        relay.stop()
        assert len(seen) == 1
        assert relay.pending_count == 0

    def test_full_queue_drops(self):
        relay = EventRelay(mode="thread", max_queue_size=1, poll_interval=0.01)
        gate = threading.Event()
        started = threading.Event()

        def slow(event):
            started.set()
            gate.wait(2.0)

        relay.subscribe(EventKind.CREATED, slow)
        try:
            relay.publish(EventKind.CREATED, {"n": 0})
            assert started.wait(2.0)
            relay.publish(EventKind.CREATED, {"n": 1})
            assert relay.publish(EventKind.CREATED, {"n": 2}) is False
            assert relay.dropped_count == 1
        finally:
            gate.set()
            relay.stop()

    def test_handler_failure_does_not_stop_worker(self):
        relay = EventRelay(mode="thread", poll_interval=0.01)
        seen = []

        def flaky(event):
            if event.payload["n"] == 0:
                raise ValueError("boom")
            seen.append(event.payload["n"])

        relay.subscribe(EventKind.CREATED, flaky)
        try:
            relay.publish(EventKind.CREATED, {"n": 0})
            relay.publish(EventKind.CREATED, {"n": 1})
            relay.flush()
        finally:
            relay.stop()
        assert seen == [1]
        assert relay.handler_failures == 1
