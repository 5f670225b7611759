"""Dependency wiring for the weather service.

An Injector is created once at process start. It builds each collaborator on
first request and hands the same instance to every consumer afterwards.

Example:
    injector = Injector()
    repository = injector.provide_repository()
"""

import threading
from typing import Optional

from app_executors import AppExecutors
from network_source import WeatherNetworkDataSource
from openmeteo_client import OpenMeteoClientConfig, OpenMeteoForecastClient
from repository import WeatherRepository
from weather_models import DatabaseEngine, WeatherDatabase


class Injector:
    """Owns the single instance of every weather service component."""

    def __init__(
        self,
        config: Optional[OpenMeteoClientConfig] = None,
        database_url: Optional[str] = None,
    ) -> None:
        """Initialize Injector.

        Args:
            config (Optional[OpenMeteoClientConfig], optional): Client configuration.
                Defaults to the configuration file.
            database_url (Optional[str], optional): SQLAlchemy URL. Defaults to
                the environment configuration.
        """
        self.__config = config
        self.__database_url = database_url
        self.__lock = threading.RLock()

        self.__executors: Optional[AppExecutors] = None
        self.__database: Optional[WeatherDatabase] = None
        self.__network_data_source: Optional[WeatherNetworkDataSource] = None
        self.__repository: Optional[WeatherRepository] = None

    def provide_config(self) -> OpenMeteoClientConfig:
        with self.__lock:
            if self.__config is None:
                self.__config = OpenMeteoClientConfig(create_from_file=True)
            return self.__config

    def provide_executors(self) -> AppExecutors:
        with self.__lock:
            if self.__executors is None:
                self.__executors = AppExecutors()
            return self.__executors

    def provide_database(self) -> WeatherDatabase:
        with self.__lock:
            if self.__database is None:
                self.__database = WeatherDatabase(
                    engine=DatabaseEngine(self.__database_url).get_engine,
                    executor=self.provide_executors().disk_io,
                )
            return self.__database

    def provide_network_data_source(self) -> WeatherNetworkDataSource:
        with self.__lock:
            if self.__network_data_source is None:
                self.__network_data_source = WeatherNetworkDataSource(
                    client=OpenMeteoForecastClient(self.provide_config()),
                    executors=self.provide_executors(),
                )
            return self.__network_data_source

    def provide_repository(self) -> WeatherRepository:
        with self.__lock:
            if self.__repository is None:
                self.__repository = WeatherRepository(
                    weather_database=self.provide_database(),
                    network_data_source=self.provide_network_data_source(),
                    executors=self.provide_executors(),
                )
            return self.__repository

    def close(self) -> None:
        """Stop the recurring sync, drain the executors and close the database."""
        with self.__lock:
            if self.__network_data_source is not None:
                self.__network_data_source.stop()
            if self.__executors is not None:
                self.__executors.shutdown(wait=True)
            if self.__database is not None:
                self.__database.close()
