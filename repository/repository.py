"""Weather Repository

Handles data operations of the weather service. Acts as a mediator between the
WeatherNetworkDataSource and the WeatherDatabase.

Synchronization Policy:
- The repository observes the network forecast stream for its whole lifetime.
  Every batch is merged on the disk executor: entries older than UTC today are
  deleted and the batch is inserted, replacing entries with the same date.
- The first read initializes the repository exactly once: the recurring
  network sync is scheduled, and an immediate fetch is started when fewer
  than NUM_DAYS days of future forecast are cached.

The repository holds no forecast data itself. Reads return live queries of the
database, so callers see merged batches as soon as they are committed.
"""

import logging
import os
import threading
from typing import Any, List, Optional

from app_executors import AppExecutors
from live_data import LiveData
from network_source import WeatherNetworkDataSource
from weather_models import (
    WeatherDatabase,
    WeatherEntry,
    normalize_date,
    normalized_utc_date_for_today,
)

LOGLEVEL = os.getenv("LOGLEVEL", "INFO")


class WeatherRepository:
    """Single source of forecast data for consumers of the weather service.

    Construct one instance per process and share it.

    Example:
        repository = WeatherRepository(database, network_data_source, executors)
        repository.get_current_weather_forecasts().observe(print)
    """

    def __init__(
        self,
        weather_database: WeatherDatabase,
        network_data_source: WeatherNetworkDataSource,
        executors: AppExecutors,
    ) -> None:
        logging.basicConfig(
            level=LOGLEVEL,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.__weather_database = weather_database
        self.__network_data_source = network_data_source
        self.__executors = executors

        self.__initialized = False
        self.__lock = threading.Lock()

        # As long as the repository exists, observe the network forecasts.
        self.__network_data_source.current_weather_forecasts.observe(
            self.__on_new_forecasts
        )

        self.logger.info("Made new repository")

    def get_current_weather_forecasts(self) -> LiveData[List[WeatherEntry]]:
        """Live list of the forecasts from UTC today onwards, ordered by date."""
        self.__initialize_data()

        return self.__weather_database.get_current_weather_forecasts(
            normalized_utc_date_for_today()
        )

    def get_weather_by_date(self, datum: Any) -> LiveData[Optional[WeatherEntry]]:
        """Live view of the forecast for one day.

        Args:
            datum (Any): A date, a datetime or a "YYYY-MM-DD" string.

        Raises:
            ValueError: When datum is a malformed date string.

        Returns:
            LiveData[Optional[WeatherEntry]]: The entry, or None if not cached.
        """
        datum = normalize_date(datum)

        self.__initialize_data()

        return self.__weather_database.get_weather_by_date(datum)

    @property
    def initialized(self) -> bool:
        return self.__initialized

    def __initialize_data(self) -> None:
        """Schedule the recurring sync and fetch right away if the cache is short.

        Runs once per repository; later calls return immediately.
        """
        with self.__lock:
            if self.__initialized:
                return
            self.__initialized = True

        self.__network_data_source.schedule_recurring_fetch_weather_sync()

        self.__executors.disk_io.execute(self.__start_fetch_if_needed)

    def __is_fetch_needed(self) -> bool:
        """Checks if there are enough days of future weather cached.

        Returns:
            bool: Whether a fetch is needed.
        """
        today = normalized_utc_date_for_today()
        count = self.__weather_database.count_all_future_weather(today)

        self.logger.info(
            f"{count} day(s) of forecast cached, {self.__network_data_source.NUM_DAYS} needed."
        )

        return count < self.__network_data_source.NUM_DAYS

    def __start_fetch_if_needed(self) -> None:
        if self.__is_fetch_needed():
            self.__network_data_source.start_fetch_weather_service()

    def __on_new_forecasts(self, new_forecasts: List[WeatherEntry]) -> None:
        self.__executors.disk_io.execute(self.__merge_forecasts, new_forecasts)

    def __merge_forecasts(self, new_forecasts: List[WeatherEntry]) -> None:
        # Old days are dropped relative to the date at merge time.
        today = normalized_utc_date_for_today()

        self.__weather_database.merge_forecasts(today, new_forecasts)
