from weather_injector.weather_injector import Injector

__all__ = ["Injector"]
