import pytest

from app_executors import AppExecutors
from repository import WeatherRepository
from tests.helpers import FakeNetworkDataSource
from weather_models import DatabaseEngine, WeatherDatabase


@pytest.fixture
def database():
    database = WeatherDatabase(engine=DatabaseEngine("sqlite://").get_engine)
    database.create_tables()
    yield database
    database.close()


@pytest.fixture
def executors():
    executors = AppExecutors()
    yield executors
    executors.shutdown(wait=True)


@pytest.fixture
def network_data_source() -> FakeNetworkDataSource:
    return FakeNetworkDataSource()


@pytest.fixture
def repository(database, network_data_source, executors) -> WeatherRepository:
    return WeatherRepository(database, network_data_source, executors)
