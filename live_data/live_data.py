"""Observable Live Data Primitives

This module provides the push-based observable values used by the weather
service to hand out continuously updated query results. A caller registers an
observer on a LiveData object and receives the current value (if one has been
posted) followed by every value posted afterwards, instead of blocking for a
single snapshot.

Core Components:
- LiveData: Read-only observable value holder with observer bookkeeping
- MutableLiveData: LiveData whose value can be posted by its owner
- InvalidationTracker: Table-name keyed change notification broadcast
- LiveQuery: LiveData that re-runs a database query whenever one of its
  backing tables changes while it is observed
- await_value: Helper to block for the first value of a LiveData

Delivery Guarantees:
- Observers see values in posting order; dispatch is serialized per LiveData
- A newly registered observer immediately receives the latest value
- An observer raising an exception is logged and does not stop delivery to
  the remaining observers
- LiveQuery objects only listen for table changes while they have at least
  one observer (active), and refresh themselves when becoming active

Example:
    forecasts = repository.get_current_weather_forecasts()
    forecasts.observe(lambda entries: print(len(entries)))
"""

import logging
import threading
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Set,
    TypeVar,
)

T = TypeVar("T")

Observer = Callable[[Any], None]

TablesObserver = Callable[[Set[str]], None]

_NOT_SET = object()


class LiveData(Generic[T]):
    """Observable holder of a single value.

    Subclasses decide how values are produced and may react to the first
    observer arriving (on_active) or the last one leaving (on_inactive).
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self._lock = threading.RLock()
        self._value: Any = _NOT_SET
        self._observers: List[Observer] = []

    @property
    def value(self) -> Optional[T]:
        """Latest posted value, or None if nothing has been posted yet."""
        with self._lock:
            return None if self._value is _NOT_SET else self._value

    @property
    def has_value(self) -> bool:
        with self._lock:
            return self._value is not _NOT_SET

    @property
    def has_observers(self) -> bool:
        with self._lock:
            return bool(self._observers)

    def observe(self, observer: Observer) -> Observer:
        """Register an observer for this LiveData.

        The observer is called right away with the latest value if one exists,
        then once for every value posted afterwards, until it is removed.
        Registering the same observer twice has no effect.

        Args:
            observer (Observer): Callable receiving each value.

        Returns:
            Observer: The registered observer, for later removal.
        """
        with self._lock:
            if observer in self._observers:
                return observer

            became_active = not self._observers
            self._observers.append(observer)

            if self._value is not _NOT_SET:
                self._dispatch(observer, self._value)

            if became_active:
                self.on_active()

        return observer

    def remove_observer(self, observer: Observer) -> None:
        """Unregister an observer. Unknown observers are ignored.

        Args:
            observer (Observer): Previously registered observer.
        """
        with self._lock:
            if observer not in self._observers:
                return

            self._observers.remove(observer)

            if not self._observers:
                self.on_inactive()

    def on_active(self) -> None:
        """Called when the number of observers goes from 0 to 1."""

    def on_inactive(self) -> None:
        """Called when the number of observers goes from 1 to 0."""

    def _post(self, value: T) -> None:
        with self._lock:
            self._value = value

            for observer in list(self._observers):
                self._dispatch(observer, value)

    def _dispatch(self, observer: Observer, value: Any) -> None:
        try:
            observer(value)
        except Exception:
            self.logger.exception(f"Observer {observer} failed while handling update.")


class MutableLiveData(LiveData[T]):
    """LiveData whose owner publishes values via post_value()."""

    def post_value(self, value: T) -> None:
        """Set the value and notify all current observers on the calling thread.

        Args:
            value (T): New value.
        """
        self._post(value)


class InvalidationTracker:
    """Broadcasts table change notifications to registered observers.

    Observers register for a set of table names and are called with the set of
    changed tables that intersects their interest.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.__lock = threading.Lock()
        self.__observers: Dict[TablesObserver, Set[str]] = {}

    def add_observer(self, tables: Iterable[str], observer: TablesObserver) -> None:
        with self.__lock:
            self.__observers[observer] = set(tables)

    def remove_observer(self, observer: TablesObserver) -> None:
        with self.__lock:
            self.__observers.pop(observer, None)

    def notify(self, tables: Iterable[str]) -> None:
        """Notify every observer interested in at least one of the given tables.

        Args:
            tables (Iterable[str]): Names of the tables that changed.
        """
        changed = set(tables)

        if not changed:
            return

        with self.__lock:
            targets = [
                (observer, interest & changed)
                for observer, interest in self.__observers.items()
                if interest & changed
            ]

        self.logger.debug(f"Tables {sorted(changed)} changed, notifying {len(targets)} observer(s).")

        for observer, intersection in targets:
            try:
                observer(intersection)
            except Exception:
                self.logger.exception(f"Invalidation observer {observer} failed.")


class LiveQuery(LiveData[T]):
    """LiveData backed by a database query.

    The query runs when the LiveQuery becomes active and again after every
    change to one of its tables, for as long as it is observed. Queries run on
    the given executor (anything exposing execute(fn)), or inline on the
    notifying thread when no executor is given.
    """

    def __init__(
        self,
        query: Callable[[], T],
        tables: Iterable[str],
        tracker: InvalidationTracker,
        executor: Any = None,
    ) -> None:
        super().__init__()

        self.__query = query
        self.__tables = set(tables)
        self.__tracker = tracker
        self.__executor = executor

    def on_active(self) -> None:
        self.__tracker.add_observer(self.__tables, self.__on_invalidated)
        self.refresh_async()

    def on_inactive(self) -> None:
        self.__tracker.remove_observer(self.__on_invalidated)

    def refresh_async(self) -> None:
        if self.__executor is None:
            self.refresh()
        else:
            self.__executor.execute(self.refresh)

    def refresh(self) -> None:
        """Re-run the query and post its result if anybody is still observing.

        Query and post happen under one lock, so concurrent refreshes post
        their snapshots in the order the queries ran.
        """
        with self._lock:
            if not self._observers:
                return

            self._post(self.__query())

    def __on_invalidated(self, tables: Set[str]) -> None:
        self.refresh_async()


def await_value(live_data: LiveData[T], timeout: Optional[float] = None) -> T:
    """Block until a LiveData delivers a value and return it.

    A temporary observer is registered and removed again, so a LiveQuery is
    only active for the duration of the call.

    Args:
        live_data (LiveData[T]): LiveData to read.
        timeout (Optional[float]): Seconds to wait. None waits forever.

    Raises:
        TimeoutError: When no value arrives within timeout.

    Returns:
        T: First value delivered to the temporary observer.
    """
    received = threading.Event()
    box: Dict[str, Any] = {}

    def observer(value: Any) -> None:
        if "value" not in box:
            box["value"] = value
            received.set()

    live_data.observe(observer)

    try:
        if not received.wait(timeout):
            raise TimeoutError(
                f"{live_data.__class__.__name__} did not deliver a value within {timeout} seconds."
            )
    finally:
        live_data.remove_observer(observer)

    return box["value"]
