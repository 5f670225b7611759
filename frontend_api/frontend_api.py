"""
Weather Service Frontend API

A FastAPI application exposing the cached daily forecasts of the weather
repository. Reading forecasts through this API initializes the repository
(recurring sync, immediate fetch when the cache is short) exactly like any
other consumer.

Endpoints:
    GET /health - Service and database health status
    GET /forecasts - Forecasts from UTC today onwards, ordered by date
    GET /forecasts/{datum} - Forecast for a single day (YYYY-MM-DD)

Data Flow:
    Each request reads the first value of a live query handed out by the
    WeatherRepository. The wait is bounded by LIVE_DATA_TIMEOUT seconds.

Dependencies:
    - FastAPI: Web framework for building APIs
    - Pydantic: Data validation and serialization
    - uvicorn: ASGI server used by main()
    - weather_injector: Construction of the repository and database

Configuration:
    - LIVE_DATA_TIMEOUT: Seconds to wait for a live query result (default 10)
    - API_HOST, API_PORT: Bind address of main() (default 0.0.0.0:8000)

Usage:
    python -m frontend_api.frontend_api
"""

import os
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict

from live_data import await_value
from repository import WeatherRepository
from weather_injector import Injector
from weather_models import WeatherDatabase

LIVE_DATA_TIMEOUT = float(os.getenv("LIVE_DATA_TIMEOUT", "10"))

API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

LIVE_DATA_TIMEOUT_MESSAGE = "Forecast data is not available yet."


class WeatherEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int]
    date: date
    weather_icon_id: Optional[int]
    min: Optional[float]
    max: Optional[float]
    humidity: Optional[float]
    pressure: Optional[float]
    wind: Optional[float]
    degrees: Optional[float]


class HealthResponse(BaseModel):
    status: str
    database: str
    message: Optional[str] = None


injector: Optional[Injector] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan definition of FastAPI app.

    - Builds the service components and creates the tables on startup.
    - Stops the sync and closes the database on shutdown.

    Args:
        app (FastAPI): FastAPI instance.
    """
    global injector
    try:
        injector = Injector()
        injector.provide_database().create_tables()
        injector.provide_repository()
        yield
    finally:
        if injector:
            injector.close()
            injector = None


app = FastAPI(
    title="Weather Service API",
    description="RESTful API for reading the cached daily weather forecast",
    version="1.0.0",
    lifespan=lifespan,
)


def get_database() -> WeatherDatabase:
    if injector is None:
        raise RuntimeError("Injector not initialized")

    return injector.provide_database()


def get_repository() -> WeatherRepository:
    if injector is None:
        raise RuntimeError("Injector not initialized")

    return injector.provide_repository()


@app.get("/health", response_model=HealthResponse)
def health_check(database: WeatherDatabase = Depends(get_database)) -> HealthResponse:
    """Health check endpoint that verifies database connectivity

    Raises:
        HTTPException: Raised when the database connectivity test fails.

    Returns:
        HealthResponse: HealthResponse object.
    """
    if database.connectivity_test():
        return HealthResponse(
            status="healthy",
            database="connected",
            message="Weather database is accessible",
        )
    else:
        raise HTTPException(
            status_code=503,
            detail={"status": "unhealthy", "database": "disconnected"},
        )


@app.get("/forecasts", response_model=List[WeatherEntryResponse])
def get_current_forecasts(
    repository: WeatherRepository = Depends(get_repository),
) -> List[WeatherEntryResponse]:
    """Get the forecasts from UTC today onwards.

    Raises:
        HTTPException: Status 503 when the live query does not answer in time.

    Returns:
        List[WeatherEntryResponse]: Forecasts ordered by date ascending.
    """
    try:
        entries = await_value(
            repository.get_current_weather_forecasts(), timeout=LIVE_DATA_TIMEOUT
        )
    except TimeoutError:
        raise HTTPException(status_code=503, detail=LIVE_DATA_TIMEOUT_MESSAGE)

    return [WeatherEntryResponse.model_validate(entry) for entry in entries]


@app.get("/forecasts/{datum}", response_model=WeatherEntryResponse)
def get_forecast_by_date(
    datum: str, repository: WeatherRepository = Depends(get_repository)
) -> WeatherEntryResponse:
    """Get the forecast for a single day.

    Args:
        datum (str): Day in YYYY-MM-DD format.

    Raises:
        HTTPException: Status 400 when datum is not a valid date.
        HTTPException: Status 404 when no forecast is cached for datum.
        HTTPException: Status 503 when the live query does not answer in time.

    Returns:
        WeatherEntryResponse: The forecast.
    """
    try:
        live_entry = repository.get_weather_by_date(datum)
    except ValueError:
        raise HTTPException(
            status_code=400, detail=f"Invalid date '{datum}'. Expected format YYYY-MM-DD."
        )

    try:
        entry = await_value(live_entry, timeout=LIVE_DATA_TIMEOUT)
    except TimeoutError:
        raise HTTPException(status_code=503, detail=LIVE_DATA_TIMEOUT_MESSAGE)

    if entry is None:
        raise HTTPException(status_code=404, detail=f"No forecast for {datum}.")

    return WeatherEntryResponse.model_validate(entry)


def main() -> None:
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    main()
