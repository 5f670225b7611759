from weather_models.date_utils import normalize_date, normalized_utc_date_for_today
from weather_models.weather_models import (
    Base,
    DatabaseEngine,
    WeatherDatabase,
    WeatherEntry,
)

__all__ = [
    "Base",
    "DatabaseEngine",
    "WeatherDatabase",
    "WeatherEntry",
    "normalize_date",
    "normalized_utc_date_for_today",
]
