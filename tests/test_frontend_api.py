"""Tests for the forecast frontend API."""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from frontend_api import app
from frontend_api.frontend_api import get_database, get_repository, main
from live_data import MutableLiveData
from tests.helpers import make_entry


@pytest.fixture
def api(database, repository):
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_repository] = lambda: repository
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    """Test cases for the health endpoint."""

    def test_healthy(self, api):
        response = api.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["database"] == "connected"

    def test_unhealthy_database(self, api):
        database = Mock()
        database.connectivity_test.return_value = False
        app.dependency_overrides[get_database] = lambda: database

        response = api.get("/health")

        assert response.status_code == 503
        assert response.json()["detail"]["status"] == "unhealthy"


class TestForecasts:
    """Test cases for the forecast endpoints."""

    def test_current_forecasts(self, api, database):
        database.bulk_insert(
            [make_entry(1, weather_icon_id=2), make_entry(-1), make_entry(0, weather_icon_id=1)]
        )

        response = api.get("/forecasts")

        assert response.status_code == 200
        body = response.json()
        assert [item["date"] for item in body] == [
            make_entry(0).date.isoformat(),
            make_entry(1).date.isoformat(),
        ]
        assert [item["weather_icon_id"] for item in body] == [1, 2]

    def test_current_forecasts_initialize_repository(self, api, repository):
        response = api.get("/forecasts")

        assert response.status_code == 200
        assert response.json() == []
        assert repository.initialized

    def test_forecast_by_date(self, api, database):
        database.bulk_insert([make_entry(2, weather_icon_id=95, minimum=12.5, maximum=21.0)])
        datum = make_entry(2).date.isoformat()

        response = api.get(f"/forecasts/{datum}")

        assert response.status_code == 200
        body = response.json()
        assert body["date"] == datum
        assert body["weather_icon_id"] == 95
        assert body["min"] == 12.5
        assert body["max"] == 21.0

    def test_missing_forecast(self, api):
        datum = make_entry(5).date.isoformat()

        response = api.get(f"/forecasts/{datum}")

        assert response.status_code == 404

    def test_malformed_date(self, api):
        response = api.get("/forecasts/not-a-date")

        assert response.status_code == 400

    def test_live_data_timeout(self, api, monkeypatch):
        repository = Mock()
        repository.get_current_weather_forecasts.return_value = MutableLiveData()
        app.dependency_overrides[get_repository] = lambda: repository
        monkeypatch.setattr("frontend_api.frontend_api.LIVE_DATA_TIMEOUT", 0.05)

        response = api.get("/forecasts")

        assert response.status_code == 503


def test_main_serves_app_with_uvicorn(monkeypatch):
    run = Mock()
    monkeypatch.setattr("frontend_api.frontend_api.uvicorn.run", run)
    monkeypatch.setattr("frontend_api.frontend_api.API_HOST", "127.0.0.1")
    monkeypatch.setattr("frontend_api.frontend_api.API_PORT", 8123)

    main()

    run.assert_called_once_with(app, host="127.0.0.1", port=8123)
