"""OpenMeteo API Client Library for Daily Forecast Retrieval

This module provides the client used by the weather network data source to
fetch daily weather forecasts from the OpenMeteo Forecast API and turn them
into WeatherEntry objects ready for the local forecast store.

Core Components:

Configuration Management:
- OpenMeteoClientConfig: Configuration from a JSON file, kwargs, or both
- Parameter validation and type conversion for API compatibility
- Sync interval settings consumed by the network data source

API Client:
- OpenMeteoForecastClient: Daily forecast retrieval for one location
- Cached HTTP session with automatic retry logic
- Response processing to pandas DataFrames
- Mapping of OpenMeteo daily metrics onto WeatherEntry columns

API Endpoint:
- Endpoint: https://api.open-meteo.com/v1/forecast
- Purpose: Weather predictions (1-16 days ahead)
- Dates: Requested in UTC so every row is one UTC calendar day

Configuration File Schema:
    {
        "latitude": float,
        "longitude": float,
        "forecast_days": int,
        "metrics": ["daily_metric1", "daily_metric2", ...],
        "sync_interval_hours": float,
        "sync_flextime_hours": float
    }

Usage Patterns:

Forecast Retrieval:\n
    config = OpenMeteoClientConfig(create_from_file=True)
    client = OpenMeteoForecastClient(config)
    entries = client.fetch_forecasts()

Configuration Management:
    From file with overrides:\n
        config = OpenMeteoClientConfig(
            create_from_file=True,
            config_file="/path/to/config.json",
            kwargs={"forecast_days": 7}
        )

    From kwargs only:\n
        config = OpenMeteoClientConfig(
            create_from_file=False,
            kwargs={"latitude": 37.4284, "longitude": -122.0724}
        )

Environment Variables:
- CONFIG_FILE: Name of the configuration file below {cwd}/config
- OPENMETEO_CACHE: HTTP cache location (default /tmp/.cache)
- OPENMETEO_CACHE_EXPIRE: HTTP cache expiry in seconds (default 3600)

Dependencies:
- openmeteo_requests: Official OpenMeteo SDK for API communication
- openmeteo_sdk: Response parsing and data extraction utilities
- pandas: Data manipulation and temporal operations
- numpy: Array handling of extracted variables
- requests_cache: HTTP caching for performance optimization
- retry_requests: Automatic retry logic for resilient operations
"""

import json
import logging
import os
from dataclasses import InitVar, dataclass, field
from typing import Any, Dict, List

import numpy as np
import openmeteo_requests
import pandas as pd
import requests_cache
from openmeteo_sdk.VariablesWithTime import VariablesWithTime
from openmeteo_sdk.VariableWithValues import VariableWithValues
from openmeteo_sdk.WeatherApiResponse import WeatherApiResponse
from retry_requests import retry

from weather_models import WeatherEntry, normalize_date

LOGLEVEL = os.getenv("LOGLEVEL", "INFO")

# OpenMeteo daily metric -> WeatherEntry column
METRIC_COLUMNS: Dict[str, str] = {
    "weather_code": "weather_icon_id",
    "temperature_2m_min": "min",
    "temperature_2m_max": "max",
    "relative_humidity_2m_mean": "humidity",
    "pressure_msl_mean": "pressure",
    "wind_speed_10m_max": "wind",
    "wind_direction_10m_dominant": "degrees",
}

DEFAULT_FORECAST_DAYS = 14
DEFAULT_SYNC_INTERVAL_HOURS = 3.0
DEFAULT_SYNC_FLEXTIME_HOURS = 1.0


@dataclass
class OpenMeteoClientConfig:
    """Configuration class for the OpenMeteo forecast client.

    Manages the forecast location, the forecast horizon, the requested daily
    metrics and the recurring sync schedule. It supports initialization from a
    JSON configuration file, direct parameter passing via kwargs, or file-based
    defaults with kwargs overrides.

    When created from kwargs only, latitude and longitude are required and the
    remaining parameters fall back to their defaults.

    Attributes:
        latitude (float): Forecast location latitude in decimal degrees
        longitude (float): Forecast location longitude in decimal degrees
        forecast_days (int): Number of future days to request (1-16)
        metrics (List[str]): OpenMeteo daily metrics to retrieve
        sync_interval_hours (float): Hours between recurring fetches (>0)
        sync_flextime_hours (float): Maximum random delay added to each
            recurring fetch (>=0)

    Example:
        config = OpenMeteoClientConfig(
            create_from_file=True,
            kwargs={"forecast_days": 10}
        )
    """

    latitude: float = field(init=False)
    longitude: float = field(init=False)
    forecast_days: int = field(init=False)
    metrics: List[str] = field(init=False)
    sync_interval_hours: float = field(init=False)
    sync_flextime_hours: float = field(init=False)
    create_from_file: InitVar[bool] = field(default=False)
    config_file: InitVar[str | None] = field(default=None)
    kwargs: InitVar[Dict[str, Any] | None] = field(default=None)

    def __post_init__(
        self,
        create_from_file: bool,
        config_file: str | None,
        kwargs: Dict[str, Any] | None,
    ):
        """Initialize OpenMeteoClientConfig from file or kwargs with validation.

        Args:
            create_from_file (bool): Whether to load base configuration from file.
                When True, attempts to load from config_file or default location.
            config_file (str | None): Path to JSON configuration file. If None and
                create_from_file=True, uses default path: {cwd}/config/{CONFIG_FILE env var or config.json}
            kwargs (Dict[str, Any] | None): Direct parameter values or overrides.
                Required when create_from_file=False. Can supplement file configuration.

        Raises:
            ValueError: When create_from_file=False but kwargs is None
            ValueError: When parameter validation fails (ranges, types)
        """
        if create_from_file:
            if not config_file:
                config_file = os.path.join(
                    os.getcwd(),
                    "config",
                    os.getenv("CONFIG_FILE", "config.json"),
                )

            config = self.__get_config(config_file)
        elif kwargs:
            config = {}
        else:
            raise ValueError("Kwargs are required when create_from_file=False.")

        config.update(kwargs or {})

        self.__set_latitude(config.get("latitude"))
        self.__set_longitude(config.get("longitude"))
        self.__set_forecast_days(config.get("forecast_days", DEFAULT_FORECAST_DAYS))
        self.__set_metrics(config.get("metrics", list(METRIC_COLUMNS)))
        self.__set_sync_interval_hours(
            config.get("sync_interval_hours", DEFAULT_SYNC_INTERVAL_HOURS)
        )
        self.__set_sync_flextime_hours(
            config.get("sync_flextime_hours", DEFAULT_SYNC_FLEXTIME_HOURS)
        )

    def __get_config(self, config_file: str) -> Dict[str, Any]:
        """Load and parse JSON configuration file.

        Args:
            config_file (str): Absolute or relative path to the JSON configuration file.

        Returns:
            Dict[str, Any]: Parsed configuration dictionary.
        """
        with open(file=config_file, mode="r") as file:
            config = json.load(fp=file)

        return config

    def __is_number(self, value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    def __set_latitude(self, latitude: Any) -> None:
        if self.__is_number(latitude) and -90.0 <= latitude <= 90.0:
            self.latitude = float(latitude)
        else:
            raise ValueError(
                f"Parameter latitude must be a number between -90 and 90. Got {latitude}"
            )

    def __set_longitude(self, longitude: Any) -> None:
        if self.__is_number(longitude) and -180.0 <= longitude <= 180.0:
            self.longitude = float(longitude)
        else:
            raise ValueError(
                f"Parameter longitude must be a number between -180 and 180. Got {longitude}"
            )

    def __set_forecast_days(self, forecast_days: Any) -> None:
        """Validate and set the forecast_days attribute.

        Args:
            forecast_days (Any): Number of forecast days to validate and set.
                Must be an integer between 1 and 16 inclusive.

        Raises:
            ValueError: When forecast_days is not an integer.
            ValueError: When forecast_days exceeds OpenMeteo API limits.
        """
        if isinstance(forecast_days, int) and not isinstance(forecast_days, bool):
            if 16 >= forecast_days > 0:
                self.forecast_days = forecast_days
            else:
                raise ValueError(
                    f"Parameter forecast_days must be between 1 and 16(incl.) Got {forecast_days}"
                )
        else:
            raise ValueError(
                f"Parameter forecast_days expected {int} Received {type(forecast_days)} instead."
            )

    def __set_metrics(self, metrics: Any) -> None:
        """Validate and set the weather metrics list.

        Args:
            metrics (Any): Non-empty list of OpenMeteo daily metric names.

        Raises:
            ValueError: When metrics is not a non-empty list.
        """
        if isinstance(metrics, list) and metrics:
            self.metrics = [str(metric) for metric in metrics]
        else:
            raise ValueError(
                f"Parameter metrics expected a non-empty {list} Received {metrics} instead."
            )

    def __set_sync_interval_hours(self, sync_interval_hours: Any) -> None:
        if self.__is_number(sync_interval_hours) and sync_interval_hours > 0:
            self.sync_interval_hours = float(sync_interval_hours)
        else:
            raise ValueError(
                f"Parameter sync_interval_hours must be >0. Got {sync_interval_hours}"
            )

    def __set_sync_flextime_hours(self, sync_flextime_hours: Any) -> None:
        if self.__is_number(sync_flextime_hours) and sync_flextime_hours >= 0:
            self.sync_flextime_hours = float(sync_flextime_hours)
        else:
            raise ValueError(
                f"Parameter sync_flextime_hours must be >=0. Got {sync_flextime_hours}"
            )


class OpenMeteoForecastClient(openmeteo_requests.Client):
    """OpenMeteo Forecast API client for daily weather forecasts.

    Retrieves the configured daily metrics for one location over the
    configured forecast horizon, in UTC, and converts the response into a
    pandas DataFrame and then into WeatherEntry objects.

    Session Configuration:
    - Cached session (OPENMETEO_CACHE, expiry OPENMETEO_CACHE_EXPIRE seconds)
    - Automatic retry with exponential backoff (5 retries, factor=0.2)

    Attributes:
        URL (str): OpenMeteo Forecast API endpoint URL
        config: OpenMeteoClientConfig instance with API parameters
        logger: Configured logger for operation monitoring

    Example:
        config = OpenMeteoClientConfig(
            create_from_file=False,
            kwargs={"latitude": 37.4284, "longitude": -122.0724, "forecast_days": 7}
        )
        client = OpenMeteoForecastClient(config)
        forecast_data = client.main()
    """

    URL = "https://api.open-meteo.com/v1/forecast"

    def __init__(self, config: OpenMeteoClientConfig, session: Any = None):
        """Initialize OpenMeteoForecastClient.

        Args:
            config (OpenMeteoClientConfig): Configuration object containing API parameters.
            session (Any, optional): HTTP session. Defaults to a cached session
                with retries.
        """
        super().__init__(session if session is not None else self.create_session())  # type: ignore

        self.config = config

        logging.basicConfig(
            level=LOGLEVEL,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.logger.info(f"Setting up {self.__class__.__name__}")

    @staticmethod
    def create_session() -> Any:
        return retry(
            requests_cache.CachedSession(
                os.getenv("OPENMETEO_CACHE", "/tmp/.cache"),
                expire_after=int(os.getenv("OPENMETEO_CACHE_EXPIRE", "3600")),
            ),
            retries=5,
            backoff_factor=0.2,
        )

    def get_data(self, url: str) -> List[WeatherApiResponse]:
        """Retrieve daily forecast data from OpenMeteo Forecast API.

        Args:
            url (str): OpenMeteo Forecast API endpoint URL.

        Returns:
            List[WeatherApiResponse]: API response objects for the configured location.
        """
        query_params = {
            "latitude": self.config.latitude,
            "longitude": self.config.longitude,
            "forecast_days": self.config.forecast_days,
            "timezone": "UTC",
            "daily": self.config.metrics,
        }

        self.logger.info(
            f"Retrieving forecast data for Lat.: {self.config.latitude}° (N), Lon.: {self.config.longitude}° (E)"
        )

        return self.weather_api(url, params=query_params)

    def extract_variable(
        self, variable_index: int, variables: VariablesWithTime
    ) -> np.ndarray:
        """Extract weather variable data from OpenMeteo API response.

        Args:
            variable_index (int): Zero-based index of the weather variable
                in the response, corresponding to the order in config.metrics.
            variables (VariablesWithTime): OpenMeteo SDK variables container.

        Raises:
            TypeError: When the variable at the specified index is not a
                VariableWithValues instance.

        Returns:
            np.ndarray: Values of the variable for all days in the response.
        """
        variable = variables.Variables(variable_index)

        if isinstance(variable, VariableWithValues):
            values = variable.ValuesAsNumpy()
        else:
            raise TypeError(
                f"Error during variable extraction. Expected type: {VariableWithValues} Got: {type(variable)} instead."
            )

        return values

    def process_response(self, response: WeatherApiResponse) -> pd.DataFrame:
        """Convert OpenMeteo API response to structured pandas DataFrame.

        Args:
            response (WeatherApiResponse): Single API response object.

        Raises:
            TypeError: When the response does not contain a valid VariablesWithTime
                daily data section.

        Returns:
            pd.DataFrame: 'date' column plus one column per requested metric.
                Each row represents one day of data.
        """
        daily = response.Daily()

        if isinstance(daily, VariablesWithTime):
            daily_data = {
                "date": pd.date_range(
                    start=pd.to_datetime(daily.Time(), unit="s", utc=True),
                    end=pd.to_datetime(daily.TimeEnd(), unit="s", utc=True),
                    freq=pd.Timedelta(seconds=daily.Interval()),
                    inclusive="left",
                )
            }

            for idx, variable_name in enumerate(self.config.metrics):
                daily_data[variable_name] = self.extract_variable(idx, daily).tolist()
        else:
            raise TypeError(
                f"Error during processing response. Expected type: {VariablesWithTime} Got: {type(daily)} instead."
            )

        return pd.DataFrame(daily_data)

    def main(self) -> pd.DataFrame:
        """Retrieve and process the daily forecast.

        Returns:
            pd.DataFrame: Forecast with a 'date' column in YYYY-MM-DD format and
                one column per requested metric.
        """
        frames = [self.process_response(response) for response in self.get_data(self.URL)]

        if not frames:
            return pd.DataFrame(columns=["date", *self.config.metrics])

        data = pd.concat(frames, axis=0, ignore_index=True)

        data["date"] = data["date"].dt.strftime("%Y-%m-%d")

        data = data.drop_duplicates(subset=["date"], keep="last")

        self.logger.info(f"{self.__class__.__name__} retrieved {len(data)} days of forecast.")

        return data

    def create_entries(self, data: pd.DataFrame) -> List[WeatherEntry]:
        """Create WeatherEntry objects from a forecast DataFrame.

        Known metrics are mapped onto WeatherEntry columns (see METRIC_COLUMNS),
        unknown metrics are ignored, NaN values become None and rows without a
        date are dropped.

        Args:
            data (pd.DataFrame): Forecast as returned by main().

        Returns:
            List[WeatherEntry]: One transient entry per day.
        """
        if data.empty or "date" not in data.columns:
            return []

        entries = []
        for row in data.dropna(subset=["date"]).to_dict(orient="records"):
            values = {
                column: None if pd.isna(row[metric]) else float(row[metric])
                for metric, column in METRIC_COLUMNS.items()
                if metric in row
            }

            if values.get("weather_icon_id") is not None:
                values["weather_icon_id"] = int(values["weather_icon_id"])

            entries.append(WeatherEntry(date=normalize_date(row["date"]), **values))

        return entries

    def fetch_forecasts(self) -> List[WeatherEntry]:
        """Fetch the configured forecast and return it as WeatherEntry objects."""
        return self.create_entries(self.main())
