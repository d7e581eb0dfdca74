"""Store connector: engine construction and the run's single connection.

This module provides:
- build_url: Resolve URL, driver, dialect and credentials into one SQLAlchemy URL
- Database: Engine factory that opens exactly one connection per run
- StoreConnection: The run's connection plus an ORM session bound to it,
  with one read transaction per record type

The connection is read-only by convention; on SQLite it is also enforced
with ``PRAGMA query_only``.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError, NoSuchModuleError, SQLAlchemyError
from sqlmodel import Session

from searchbuild.core.errors import CleanupError, ConnectError

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

    from searchbuild.config.models import StoreConfig

logger = structlog.get_logger()


def build_url(config: StoreConfig) -> URL:
    """Combine the configured URL with driver, dialect and credential overrides.

    Raises:
        ConnectError: If the URL cannot be parsed.
    """
    if not config.url:
        raise ConnectError.connection_failed("<unset>", "store.url is not configured")
    try:
        url = make_url(config.url)
    except ArgumentError as e:
        raise ConnectError.driver_load_failed(config.driver or "<default>", str(e)) from e

    if config.dialect or config.driver:
        backend = config.dialect or url.get_backend_name()
        driver = config.driver or (None if config.dialect else url.get_driver_name())
        url = url.set(drivername=f"{backend}+{driver}" if driver else backend)
    if config.username is not None:
        url = url.set(username=config.username)
    if config.password is not None:
        url = url.set(password=config.password.get_secret_value())
    return url


class Database:
    """Engine factory for a reindex run.

    Usage::

        db = Database(config.store)
        store = db.connect()
        try:
            with store.transaction():
                rows = store.session.scalars(select(Customer))
        finally:
            store.close()
    """

    def __init__(self, config: StoreConfig) -> None:
        self.config = config
        self.url = build_url(config)
        self._engine: Engine | None = None

    @property
    def display_url(self) -> str:
        return self.url.render_as_string(hide_password=True)

    def _create_engine(self) -> Engine:
        try:
            engine = create_engine(self.url, echo=self.config.echo, pool_pre_ping=True)
        except (NoSuchModuleError, ImportError) as e:
            raise ConnectError.driver_load_failed(self.url.drivername, str(e)) from e
        except ArgumentError as e:
            raise ConnectError.driver_load_failed(self.url.drivername, str(e)) from e
        if self.url.get_backend_name() == "sqlite":
            event.listen(engine, "connect", _configure_sqlite_pragmas)
        return engine

    def connect(self) -> StoreConnection:
        """Open the run's connection.

        Raises:
            ConnectError: If the driver cannot be loaded or the store refuses
                the connection.
        """
        if self._engine is None:
            self._engine = self._create_engine()
        try:
            connection = self._engine.connect()
        except SQLAlchemyError as e:
            raise ConnectError.connection_failed(self.display_url, str(e)) from e
        logger.info("store_connected", url=self.display_url)
        return StoreConnection(self._engine, connection)


def _configure_sqlite_pragmas(dbapi_conn: Any, _connection_record: Any) -> None:
    """Make SQLite connections read-only for the indexer."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA query_only=ON")
    cursor.close()


class StoreConnection:
    """One connection and one ORM session, owned by a single run."""

    def __init__(self, engine: Engine, connection: Connection) -> None:
        self.engine = engine
        self.connection = connection
        self.session = Session(bind=connection, autoflush=False, expire_on_commit=False)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """Read transaction for one record type.

        Ends the transaction and detaches loaded instances on exit, so records
        of one type are not kept alive while the next type is read.
        """
        with self.session.begin():
            yield self.session
        self.session.expunge_all()

    def close(self) -> None:
        """Close session, connection and engine pool.

        Raises:
            CleanupError: If any of them fails to close. Every step is still
                attempted.
        """
        if self._closed:
            return
        self._closed = True
        failures: list[str] = []
        for resource, closer in (
            ("store session", self.session.close),
            ("store connection", self.connection.close),
            ("store engine", self.engine.dispose),
        ):
            try:
                closer()
            except SQLAlchemyError as e:
                failures.append(f"{resource}: {e}")
        if failures:
            raise CleanupError.failed("store connection", "; ".join(failures))
