from repository.repository import WeatherRepository

__all__ = ["WeatherRepository"]
