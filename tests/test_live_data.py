"""Tests for the observable live data primitives."""

import threading

import pytest

from app_executors import AppExecutors
from live_data import (
    InvalidationTracker,
    LiveData,
    LiveQuery,
    MutableLiveData,
    await_value,
)
from tests.helpers import drain, wait_until


class CountingLiveData(LiveData):
    def __init__(self):
        super().__init__()
        self.active_calls = 0
        self.inactive_calls = 0

    def on_active(self):
        self.active_calls += 1

    def on_inactive(self):
        self.inactive_calls += 1


class TestMutableLiveData:
    """Test cases for MutableLiveData."""

    def test_new_observer_receives_latest_value(self):
        live_data = MutableLiveData()
        live_data.post_value(1)
        live_data.post_value(2)

        received = []
        live_data.observe(received.append)

        assert received == [2]

    def test_observer_without_value_is_not_called(self):
        live_data = MutableLiveData()
        received = []
        live_data.observe(received.append)

        assert received == []
        assert live_data.value is None
        assert not live_data.has_value

    def test_values_arrive_in_posting_order(self):
        live_data = MutableLiveData()
        received = []
        live_data.observe(received.append)

        for value in range(5):
            live_data.post_value(value)

        assert received == [0, 1, 2, 3, 4]

    def test_removed_observer_is_not_called(self):
        live_data = MutableLiveData()
        received = []
        live_data.observe(received.append)
        live_data.post_value("a")
        live_data.remove_observer(received.append)
        live_data.post_value("b")

        assert received == ["a"]
        assert not live_data.has_observers

    def test_failing_observer_does_not_stop_delivery(self, caplog):
        live_data = MutableLiveData()

        def failing(value):
            raise RuntimeError("boom")

        received = []
        live_data.observe(failing)
        live_data.observe(received.append)
        live_data.post_value(42)

        assert received == [42]
        assert "failed while handling update" in caplog.text

    def test_registering_twice_delivers_once(self):
        live_data = MutableLiveData()
        received = []
        live_data.observe(received.append)
        live_data.observe(received.append)
        live_data.post_value(1)

        assert received == [1]


class TestLiveDataActivity:
    """Test cases for the on_active / on_inactive hooks."""

    def test_hooks_follow_observer_count(self):
        live_data = CountingLiveData()

        def first(value):
            pass

        def second(value):
            pass

        live_data.observe(first)
        live_data.observe(second)
        assert live_data.active_calls == 1

        live_data.remove_observer(first)
        assert live_data.inactive_calls == 0

        live_data.remove_observer(second)
        assert live_data.inactive_calls == 1

        live_data.observe(first)
        assert live_data.active_calls == 2


class TestInvalidationTracker:
    """Test cases for InvalidationTracker."""

    def test_notifies_only_interested_observers(self):
        tracker = InvalidationTracker()
        weather, other = [], []
        tracker.add_observer(["weather"], weather.append)
        tracker.add_observer(["other"], other.append)

        tracker.notify(["weather", "unrelated"])

        assert weather == [{"weather"}]
        assert other == []

    def test_empty_notification_is_ignored(self):
        tracker = InvalidationTracker()
        received = []
        tracker.add_observer(["weather"], received.append)

        tracker.notify([])

        assert received == []

    def test_removed_observer_is_not_notified(self):
        tracker = InvalidationTracker()
        received = []
        tracker.add_observer(["weather"], received.append)
        tracker.remove_observer(received.append)

        tracker.notify(["weather"])

        assert received == []


class TestLiveQuery:
    """Test cases for LiveQuery."""

    def test_query_runs_on_activation_and_on_invalidation(self):
        tracker = InvalidationTracker()
        source = {"value": 1}
        live_query = LiveQuery(lambda: source["value"], ["weather"], tracker)

        received = []
        live_query.observe(received.append)
        source["value"] = 2
        tracker.notify(["weather"])

        assert received == [1, 2]

    def test_inactive_query_ignores_invalidation(self):
        tracker = InvalidationTracker()
        calls = []

        def query():
            calls.append(1)
            return len(calls)

        live_query = LiveQuery(query, ["weather"], tracker)
        tracker.notify(["weather"])

        assert calls == []

        observer = live_query.observe(lambda value: None)
        live_query.remove_observer(observer)
        tracker.notify(["weather"])

        assert calls == [1]

    def test_other_tables_do_not_refresh(self):
        tracker = InvalidationTracker()
        calls = []
        live_query = LiveQuery(lambda: calls.append(1), ["weather"], tracker)
        live_query.observe(lambda value: None)

        tracker.notify(["other"])

        assert len(calls) == 1

    def test_overlapping_inline_refreshes_post_in_query_order(self):
        tracker = InvalidationTracker()
        source = {"value": 0}
        entered = threading.Event()
        release = threading.Event()

        def query():
            value = source["value"]
            if value == 1 and not entered.is_set():
                entered.set()
                release.wait(timeout=5)
            return value

        live_query = LiveQuery(query, ["weather"], tracker)
        received = []
        live_query.observe(received.append)

        source["value"] = 1
        slow = threading.Thread(target=tracker.notify, args=(["weather"],))
        slow.start()
        assert entered.wait(timeout=5)

        source["value"] = 2
        fast = threading.Thread(target=tracker.notify, args=(["weather"],))
        fast.start()
        fast.join(timeout=0.1)
        release.set()
        slow.join(timeout=5)
        fast.join(timeout=5)

        assert received == [0, 1, 2]
        assert live_query.value == 2

    def test_refresh_runs_on_executor(self):
        executors = AppExecutors()
        try:
            tracker = InvalidationTracker()
            threads = []

            def query():
                threads.append(threading.current_thread().name)
                return len(threads)

            live_query = LiveQuery(query, ["weather"], tracker, executor=executors.disk_io)
            received = []
            live_query.observe(received.append)
            tracker.notify(["weather"])
            drain(executors.disk_io)

            assert received == [1, 2]
            assert all(name.startswith("disk-io") for name in threads)
        finally:
            executors.shutdown()


class TestAwaitValue:
    """Test cases for await_value."""

    def test_returns_present_value(self):
        live_data = MutableLiveData()
        live_data.post_value("ready")

        assert await_value(live_data, timeout=1) == "ready"
        assert not live_data.has_observers

    def test_waits_for_value_posted_later(self):
        live_data = MutableLiveData()
        timer = threading.Timer(0.05, live_data.post_value, args=("late",))
        timer.start()

        try:
            assert await_value(live_data, timeout=5) == "late"
        finally:
            timer.cancel()

    def test_times_out_without_value(self):
        live_data = MutableLiveData()

        with pytest.raises(TimeoutError):
            await_value(live_data, timeout=0.05)

        assert wait_until(lambda: not live_data.has_observers)
