from network_source.network_source import WeatherNetworkDataSource

__all__ = ["WeatherNetworkDataSource"]
