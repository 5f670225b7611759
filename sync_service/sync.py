"""Weather Service Sync Module

Long-running process that keeps the local forecast cache in sync with the
OpenMeteo Forecast API.

Sync Operations:
- Creates the weather table if it does not exist
- Builds the repository, database and network data source once
- Reads the current forecasts, which schedules the recurring sync and fetches
  immediately when fewer than NUM_DAYS future days are cached
- Logs every update of the cached forecast until interrupted

Usage:
    python -m sync_service.sync

Configuration:
    Location, horizon and sync interval come from config/config.json (see
    OpenMeteoClientConfig). Database settings come from DATABASE_URL or the
    POSTGRES_* environment variables.
"""

import logging
import os
import signal
import threading
from typing import List

from weather_injector import Injector
from weather_models import WeatherEntry

LOGLEVEL = os.getenv("LOGLEVEL", "INFO")


def main() -> None:
    logging.basicConfig(
        level=LOGLEVEL,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger(name="Sync Service")

    stop_requested = threading.Event()

    signal.signal(signal.SIGTERM, lambda signum, frame: stop_requested.set())
    signal.signal(signal.SIGINT, lambda signum, frame: stop_requested.set())

    injector = Injector()

    try:
        logger.info("Starting sync service...")

        database = injector.provide_database()
        database.create_tables()

        repository = injector.provide_repository()

        def log_forecasts(entries: List[WeatherEntry]) -> None:
            logger.info(f"Cached forecast holds {len(entries)} day(s).")
            if entries:
                logger.debug(f"\n{database.to_dataframe(entries)}")

        forecasts = repository.get_current_weather_forecasts()
        forecasts.observe(log_forecasts)

        stop_requested.wait()

        forecasts.remove_observer(log_forecasts)
        logger.info("Sync service stopped.")
    except Exception:
        logger.exception("An error occurred in the sync service:")
    finally:
        injector.close()


if __name__ == "__main__":
    main()
