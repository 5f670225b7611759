"""Weather Network Data Source

Provides an API for doing all operations with the remote forecast server. The
data source owns the observable stream of freshly fetched forecast batches and
decides when fetches happen: on a recurring schedule and on demand.

Operations:
- current_weather_forecasts: MutableLiveData posting every non-empty batch
- schedule_recurring_fetch_weather_sync(): Start the recurring fetch once
- start_fetch_weather_service(): Trigger an immediate background fetch
- fetch_weather(): Fetch synchronously and post the result
- stop(): Cancel the recurring fetch

Error Handling:
Fetch failures (HTTP, decoding, SDK errors) are logged and end the fetch
without posting anything. Retries are done by the HTTP session of the
OpenMeteo client; no retry policy lives here.
"""

import logging
import os
import random
import threading
from typing import List, Optional

from app_executors import AppExecutors
from live_data import MutableLiveData
from openmeteo_client import OpenMeteoForecastClient
from weather_models import WeatherEntry

LOGLEVEL = os.getenv("LOGLEVEL", "INFO")


class WeatherNetworkDataSource:
    """Remote source of daily forecast batches.

    Attributes:
        NUM_DAYS (int): Days of forecast the service needs cached (14)
        current_weather_forecasts (MutableLiveData[List[WeatherEntry]]):
            Stream of fetched forecast batches
    """

    NUM_DAYS = 14

    def __init__(self, client: OpenMeteoForecastClient, executors: AppExecutors) -> None:
        logging.basicConfig(
            level=LOGLEVEL,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.client = client
        self.executors = executors

        self.current_weather_forecasts: MutableLiveData[List[WeatherEntry]] = MutableLiveData()

        self.__lock = threading.Lock()
        self.__fetch_pending = False
        self.__stop_event = threading.Event()
        self.__sync_thread: Optional[threading.Thread] = None

    def schedule_recurring_fetch_weather_sync(self) -> None:
        """Schedule a recurring forecast fetch. Calling it again has no effect.

        The fetch repeats every sync_interval_hours of the client configuration,
        each time delayed by up to sync_flextime_hours at random.
        """
        with self.__lock:
            if self.__sync_thread is not None:
                return

            self.__sync_thread = threading.Thread(
                target=self.__run_recurring_sync,
                name="weather-sync",
                daemon=True,
            )
            self.__sync_thread.start()

        self.logger.info(
            f"Recurring sync scheduled every {self.client.config.sync_interval_hours} hour(s)."
        )

    def start_fetch_weather_service(self) -> None:
        """Fetch the forecast now, in the background.

        A request made while a fetch is still queued or running is dropped.
        """
        with self.__lock:
            if self.__fetch_pending:
                self.logger.info("Fetch already in progress.")
                return
            self.__fetch_pending = True

        self.logger.info("Immediate fetch requested.")

        try:
            self.executors.network_io.execute(self.__fetch_and_release)
        except RuntimeError:
            with self.__lock:
                self.__fetch_pending = False
            raise

    def fetch_weather(self) -> None:
        """Fetch the forecast and post it to current_weather_forecasts.

        Only non-empty batches are posted.
        """
        self.logger.info("Fetch weather started")

        try:
            entries = self.client.fetch_forecasts()
        except Exception:
            self.logger.exception("Fetching the weather forecast failed.")
            return

        self.logger.info(f"JSON parsed into {len(entries)} weather entries.")

        if entries:
            self.current_weather_forecasts.post_value(entries)
            self.logger.info(f"Posted {len(entries)} new forecasts.")

    def stop(self) -> None:
        """Stop the recurring fetch. Queued fetches still complete."""
        self.__stop_event.set()

        with self.__lock:
            sync_thread = self.__sync_thread

        if sync_thread is not None:
            sync_thread.join(timeout=5)

    def __fetch_and_release(self) -> None:
        try:
            self.fetch_weather()
        finally:
            with self.__lock:
                self.__fetch_pending = False

    def __next_delay_seconds(self) -> float:
        interval = self.client.config.sync_interval_hours * 3600
        flextime = self.client.config.sync_flextime_hours * 3600

        return interval + random.uniform(0, flextime)

    def __run_recurring_sync(self) -> None:
        while not self.__stop_event.wait(self.__next_delay_seconds()):
            self.logger.info("Recurring sync due.")
            self.start_fetch_weather_service()
