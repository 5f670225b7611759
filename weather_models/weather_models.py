"""Weather Service Data Models and Local Forecast Store

This module defines the data model and the local relational cache of the
weather service. It provides the SQLAlchemy ORM model for per-day forecast
entries, database engine configuration, and the WeatherDatabase class that
offers the queries and mutations used by the repository layer.

Core Components:

Database Models:
- WeatherEntry: One forecast for one calendar day, unique per date

Database Management:
- DatabaseEngine: Engine configuration from a URL or environment variables
- WeatherDatabase: Queries, live queries, bulk upsert and deletion of entries

Key Features:
- Unique date column so that a re-fetched day replaces its predecessor
- Live queries (LiveQuery) that push a fresh result after every committed
  change to the weather table
- Table change detection through SQLAlchemy session events, broadcast only
  after a successful commit
- Atomic merge of a forecast batch (delete old entries, then replace-insert)
- Thread safe: every session is opened and closed under an internal lock

Data Schema:
- date: Forecast day (UTC calendar day)
- weather_icon_id: WMO weather condition code
- min/max: Minimum and maximum temperature in Celsius at 2m height
- humidity: Mean relative humidity in percent
- pressure: Mean sea level pressure in hPa
- wind: Maximum wind speed in km/h at 10m height
- degrees: Dominant wind direction in degrees

Database Configuration:
The engine URL is taken from the constructor, then from DATABASE_URL, and
falls back to PostgreSQL with the psycopg2 driver built from:
- POSTGRES_USER: Database username
- POSTGRES_PASSWORD: Database password
- POSTGRES_HOST: Database server hostname
- POSTGRES_PORT: Database server port
- POSTGRES_DB: Target database name

Usage Patterns:
    database = WeatherDatabase()
    database.create_tables()

    forecasts = database.get_current_weather_forecasts(date.today())
    forecasts.observe(print)

    database.merge_forecasts(date.today(), entries)

Session Management:
    try:
        database = WeatherDatabase()
        # Perform operations
    finally:
        database.close()

Dependencies:
- SQLAlchemy: ORM, session events and database abstraction layer
- pandas: DataFrame export of stored entries
- PostgreSQL: Default database backend with psycopg2 driver
- live_data: LiveQuery and InvalidationTracker for observable queries
"""

import logging
import os
import threading
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, TypeVar

import pandas as pd
from sqlalchemy import (
    Column,
    Date,
    Float,
    Integer,
    create_engine,
    delete,
    event,
    func,
    or_,
    select,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from live_data import InvalidationTracker, LiveQuery
from weather_models.date_utils import normalize_date

LOGLEVEL = os.getenv("LOGLEVEL", "INFO")

Base = declarative_base()

T = TypeVar("T")


class WeatherEntry(Base):
    """Daily weather forecast data table.

    Table Structure:
    - Autoincrement id as primary key
    - Unique, indexed date column: at most one forecast per day
    - Condition code and temperature range required by every consumer
    - Optional humidity, pressure and wind measurements
    """

    __tablename__ = "weather"

    id = Column(Integer, primary_key=True, autoincrement=True)
    weather_icon_id = Column(Integer)
    date = Column(Date, index=True, unique=True, nullable=False)
    min = Column(Float)
    max = Column(Float)
    humidity = Column(Float)
    pressure = Column(Float)
    wind = Column(Float)
    degrees = Column(Float)

    def __repr__(self) -> str:
        return f"WeatherEntry(id={self.id}, date={self.date}, weather_icon_id={self.weather_icon_id}, min={self.min}, max={self.max})"


class DatabaseEngine:
    """Database Engine Configuration and Connection Management

    Builds the SQLAlchemy engine from an explicit URL, the DATABASE_URL
    environment variable, or the POSTGRES_* environment variables (PostgreSQL
    dialect with the psycopg2 driver). SQLite in-memory databases get a single
    shared connection so that every thread sees the same data.

    Attributes:
        __DIALECT (str): Database dialect identifier ("postgresql")
        __DRIVER (str): Database driver identifier ("psycopg2")
    """

    __DIALECT = "postgresql"
    __DRIVER = "psycopg2"

    def __init__(self, url: str | None = None) -> None:
        """Initialize DatabaseEngine.

        Args:
            url (str | None, optional): SQLAlchemy database URL. Defaults to the
                environment configuration.
        """
        url = url or os.getenv("DATABASE_URL") or self.__url_from_environment()

        parsed_url = make_url(url)

        if parsed_url.get_backend_name() == "sqlite":
            if parsed_url.database in (None, "", ":memory:"):
                self.__engine = create_engine(
                    url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                    echo=False,
                )
            else:
                self.__engine = create_engine(
                    url, connect_args={"check_same_thread": False}, echo=False
                )
        else:
            self.__engine = create_engine(url, echo=False)

    def __url_from_environment(self) -> str:
        return (
            f"{DatabaseEngine.__DIALECT}+{DatabaseEngine.__DRIVER}://"
            f"{os.getenv('POSTGRES_USER')}:{os.getenv('POSTGRES_PASSWORD')}@"
            f"{os.getenv('POSTGRES_HOST')}:{os.getenv('POSTGRES_PORT')}/{os.getenv('POSTGRES_DB')}"
        )

    @property
    def get_engine(self) -> Engine:
        """SQLAlchemy database engine.

        Returns:
            sqlalchemy.engine.Engine: Configured SQLAlchemy engine instance
                ready for database operations.
        """
        return self.__engine


class WeatherDatabase:
    """Local Forecast Store

    This class is the local relational cache of daily forecasts. It offers the
    count, query, upsert and delete operations the repository relies on, and
    live queries that keep observers up to date with the weather table.

    Every operation opens its own short-lived session under an internal lock.
    Tables touched by a transaction are collected through SQLAlchemy session
    events and broadcast through the invalidation_tracker once the transaction
    has committed; a rollback broadcasts nothing.

    Attributes:
        logger: Configured logger instance for database operations
        DB_SESSION: SQLAlchemy session factory for database transactions
        invalidation_tracker: Broadcast of committed table changes

    Example:
        database = WeatherDatabase(DatabaseEngine("sqlite://").get_engine)
        database.create_tables()
        database.bulk_insert(entries)
        database.close()
    """

    def __init__(self, engine: Engine | None = None, executor: Any = None) -> None:
        """Initialize WeatherDatabase instance.

        Args:
            engine (Engine | None, optional): Engine to use. Defaults to the
                environment configured DatabaseEngine.
            executor (Any, optional): Executor running live query refreshes.
                Defaults to None, which refreshes on the committing thread.
        """
        logging.basicConfig(
            level=LOGLEVEL,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.__engine = engine if engine is not None else DatabaseEngine().get_engine
        self.__executor = executor
        self.__lock = threading.RLock()

        self.DB_SESSION = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.invalidation_tracker = InvalidationTracker()

        event.listen(self.DB_SESSION, "after_flush", self.__on_after_flush)
        event.listen(self.DB_SESSION, "do_orm_execute", self.__on_orm_execute)
        event.listen(self.DB_SESSION, "after_commit", self.__on_after_commit)
        event.listen(self.DB_SESSION, "after_rollback", self.__on_after_rollback)

    def create_tables(self) -> None:
        """Create the weather table if it does not exist."""
        Base.metadata.create_all(self.__engine)

    def connectivity_test(self) -> bool:
        """Check whether the database answers a trivial query.

        Returns:
            bool: True if the database is reachable.
        """
        try:
            with self.__engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            self.logger.exception("Database connectivity test failed.")
            return False

    def get_current_weather_forecasts(self, datum: Any) -> LiveQuery[List[WeatherEntry]]:
        """Live list of all entries on or after a given date, inclusive.

        The LiveQuery is kept in sync with the database and notifies its
        observers whenever the weather table changes.

        Args:
            datum (Any): Date from which to select all future weather.

        Returns:
            LiveQuery[List[WeatherEntry]]: Entries ordered by date ascending.
        """
        datum = normalize_date(datum)

        def query(session: Session) -> List[WeatherEntry]:
            return list(
                session.scalars(
                    select(WeatherEntry)
                    .where(WeatherEntry.date >= datum)
                    .order_by(WeatherEntry.date)
                ).all()
            )

        return self.__live_query(query)

    def count_all_future_weather(self, datum: Any) -> int:
        """Count the entries on or after a given date, inclusive.

        Args:
            datum (Any): The date to count from.

        Returns:
            int: Number of future weather forecasts stored in the database.
        """
        datum = normalize_date(datum)

        return self.__read(
            lambda session: session.scalar(
                select(func.count(WeatherEntry.id)).where(WeatherEntry.date >= datum)
            )
            or 0
        )

    def get_weather_by_date(self, datum: Any) -> LiveQuery[Optional[WeatherEntry]]:
        """Live view of the weather for a single day.

        Args:
            datum (Any): The date you want weather for.

        Returns:
            LiveQuery[Optional[WeatherEntry]]: The entry, or None if absent.
        """
        datum = normalize_date(datum)

        def query(session: Session) -> Optional[WeatherEntry]:
            return session.scalars(
                select(WeatherEntry).where(WeatherEntry.date == datum)
            ).first()

        return self.__live_query(query)

    def get_table(self) -> Sequence[WeatherEntry]:
        """Retrieve every stored entry ordered by date.

        Returns:
            Sequence[WeatherEntry]: Sequence containing the data.
        """
        return self.__read(
            lambda session: session.scalars(
                select(WeatherEntry).order_by(WeatherEntry.date)
            ).all()
        )

    def bulk_insert(self, entries: Iterable[WeatherEntry]) -> None:
        """Insert forecasts, replacing stored entries with a conflicting date or id.

        Args:
            entries (Iterable[WeatherEntry]): Weather forecasts to insert.
        """
        with self.__transaction() as session:
            self.__replace(session, entries)

    def delete_old_weather(self, datum: Any) -> int:
        """Delete any weather data older than the given day.

        Args:
            datum (Any): The date to delete all prior weather from (exclusive).

        Returns:
            int: Number of deleted entries.
        """
        with self.__transaction() as session:
            deleted = self.__delete_before(session, normalize_date(datum))

        return deleted

    def merge_forecasts(self, datum: Any, entries: Iterable[WeatherEntry]) -> None:
        """Delete entries older than datum and insert a batch in one transaction.

        Observers are notified once, after both steps have committed, so no
        reader sees old data removed without the new data present.

        Args:
            datum (Any): Cutoff date; entries strictly before it are deleted.
            entries (Iterable[WeatherEntry]): Forecast batch to insert.
        """
        with self.__transaction() as session:
            deleted = self.__delete_before(session, normalize_date(datum))
            self.logger.info(f"Old weather deleted ({deleted} entries).")

            inserted = self.__replace(session, entries)
            self.logger.info(f"New values inserted ({inserted} entries).")

    def to_dataframe(self, data: Sequence[WeatherEntry]) -> pd.DataFrame:
        """Convert WeatherEntry objects to a pandas DataFrame.

        Args:
            data (Sequence[WeatherEntry]): Entries to convert.

        Returns:
            pd.DataFrame: One row per entry, one column per table column.
                Returns empty DataFrame if data sequence is empty.
        """
        if not data:
            return pd.DataFrame()
        else:
            dataframe = pd.DataFrame(
                [
                    {
                        column.name: getattr(obj, column.name)
                        for column in obj.__table__.columns
                    }
                    for obj in data
                ]
            )

        return dataframe

    def close(self) -> None:
        """Release all pooled connections. No operation should follow."""
        self.logger.info("Closing Database Connections...")
        self.__engine.dispose()

    def __delete_before(self, session: Session, datum: date) -> int:
        result = session.execute(delete(WeatherEntry).where(WeatherEntry.date < datum))

        return result.rowcount or 0

    def __replace(self, session: Session, entries: Iterable[WeatherEntry]) -> int:
        # Within one batch a later entry evicts earlier ones sharing its date or id.
        batch: List[WeatherEntry] = []
        for entry in entries:
            clone = self.__clone_model(entry)
            batch = [
                kept
                for kept in batch
                if kept.date != clone.date
                and (clone.id is None or kept.id != clone.id)
            ]
            batch.append(clone)

        if not batch:
            return 0

        conflict = WeatherEntry.date.in_([entry.date for entry in batch])

        ids = [entry.id for entry in batch if entry.id is not None]
        if ids:
            conflict = or_(conflict, WeatherEntry.id.in_(ids))

        session.execute(delete(WeatherEntry).where(conflict))
        session.add_all(batch)

        return len(batch)

    def __clone_model(
        self, source_obj: WeatherEntry, exclude: Iterable[str] = ()
    ) -> WeatherEntry:
        """Creates a transient WeatherEntry from another WeatherEntry.

        Entries handed in by callers may already be attached to, or detached
        from, another session; inserting a fresh copy keeps them untouched.

        Args:
            source_obj (WeatherEntry): Source ORM object.
            exclude (Iterable[str], optional): Defines fields to ignore. Defaults to ().

        Returns:
            WeatherEntry: Cloned WeatherEntry ORM object with a normalized date.
        """
        target_object = WeatherEntry(
            **{
                k: getattr(source_obj, k)
                for k in source_obj.__table__.columns.keys()
                if k not in exclude
            }
        )
        target_object.date = normalize_date(target_object.date)

        return target_object

    def __live_query(self, query: Callable[[Session], T]) -> LiveQuery[T]:
        return LiveQuery(
            query=lambda: self.__read(query),
            tables=[WeatherEntry.__tablename__],
            tracker=self.invalidation_tracker,
            executor=self.__executor,
        )

    def __read(self, query: Callable[[Session], T]) -> T:
        with self.__lock, self.DB_SESSION() as session:
            return query(session)

    @contextmanager
    def __transaction(self) -> Iterator[Session]:
        with self.__lock:
            session = self.DB_SESSION()
            try:
                with session.begin():
                    yield session
                changed_tables = session.info.pop("committed_tables", set())
            finally:
                session.close()

        # Broadcast outside the lock so that inline refreshes can read freely.
        self.invalidation_tracker.notify(changed_tables)

    def __record_tables(self, session: Session, tables: Iterable[str]) -> None:
        session.info.setdefault("changed_tables", set()).update(tables)

    def __on_after_flush(self, session: Session, flush_context: Any) -> None:
        self.__record_tables(
            session,
            [
                obj.__table__.name
                for obj in (*session.new, *session.dirty, *session.deleted)
                if hasattr(obj, "__table__")
            ],
        )

    def __on_orm_execute(self, orm_execute_state: Any) -> None:
        if (
            orm_execute_state.is_insert
            or orm_execute_state.is_update
            or orm_execute_state.is_delete
        ):
            self.__record_tables(
                orm_execute_state.session,
                [mapper.local_table.name for mapper in orm_execute_state.all_mappers],
            )

    def __on_after_commit(self, session: Session) -> None:
        session.info.setdefault("committed_tables", set()).update(
            session.info.pop("changed_tables", set())
        )

    def __on_after_rollback(self, session: Session) -> None:
        session.info.pop("changed_tables", None)
