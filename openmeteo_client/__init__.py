from openmeteo_client.openmeteo_client import (
    METRIC_COLUMNS,
    OpenMeteoClientConfig,
    OpenMeteoForecastClient,
)

__all__ = ["METRIC_COLUMNS", "OpenMeteoClientConfig", "OpenMeteoForecastClient"]
