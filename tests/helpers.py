"""Shared helpers for the weather service tests."""

import threading
import time
from datetime import timedelta
from typing import Callable, Tuple

from live_data import MutableLiveData
from weather_models import WeatherEntry, normalized_utc_date_for_today


def make_entry(
    days_from_today: int,
    weather_icon_id: int = 800,
    minimum: float = 10.0,
    maximum: float = 20.0,
    **kwargs,
) -> WeatherEntry:
    return WeatherEntry(
        date=normalized_utc_date_for_today() + timedelta(days=days_from_today),
        weather_icon_id=weather_icon_id,
        min=minimum,
        max=maximum,
        **kwargs,
    )


def entry_values(entry: WeatherEntry) -> Tuple:
    return (
        entry.date,
        entry.weather_icon_id,
        entry.min,
        entry.max,
        entry.humidity,
        entry.pressure,
        entry.wind,
        entry.degrees,
    )


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def drain(executor) -> None:
    """Wait for everything queued on a single-worker executor so far."""
    executor.submit(lambda: None).result(timeout=5)


class FakeNetworkDataSource:
    """Network data source double recording the calls made by the repository."""

    NUM_DAYS = 14

    def __init__(self) -> None:
        self.current_weather_forecasts = MutableLiveData()
        self.schedule_calls = 0
        self.fetch_calls = 0
        self.__lock = threading.Lock()

    def schedule_recurring_fetch_weather_sync(self) -> None:
        with self.__lock:
            self.schedule_calls += 1

    def start_fetch_weather_service(self) -> None:
        with self.__lock:
            self.fetch_calls += 1
