import logging
from datetime import date

from sqlalchemy import (
    TIMESTAMP,
    Column,
    Date,
    Engine,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
    text,
)
from sqlalchemy.dialects.mysql import LONGTEXT
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError

from acquisition.domain import ExtractedPayload
from acquisition.sinks.base import SinkError, SinkNotProvisionedError

logger = logging.getLogger(__name__)


def build_downloads_table(metadata: MetaData, table_name: str) -> Table:
    return Table(
        table_name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("download_date", Date, nullable=False),
        Column("file_data", Text().with_variant(LONGTEXT(), "mysql"), nullable=False),
        Column("created_at", TIMESTAMP, server_default=func.current_timestamp()),
    )


class SQLAlchemyRelationalSink:
    """
    Relational sink: the whole extracted text becomes one row per run.

    On MySQL the database itself is created if absent (through a server-level
    connection), then the table is created with checkfirst semantics.
    """

    wants_lines = False

    def __init__(self, *, url: str, database: str, table: str):
        self._url = make_url(url)
        if self._url.database is None and self._url.get_backend_name() == "mysql":
            self._url = self._url.set(database=database)
        self._database = database

        self._metadata = MetaData()
        self._table = build_downloads_table(self._metadata, table)
        self._engine: Engine | None = None

    def __enter__(self) -> "SQLAlchemyRelationalSink":
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    @property
    def table(self) -> Table:
        return self._table

    def ensure_schema(self) -> None:
        try:
            if self._url.get_backend_name() == "mysql":
                self._create_mysql_database()

            engine = self._engine or create_engine(self._url, pool_pre_ping=True)
            self._metadata.create_all(engine, checkfirst=True)
        except SQLAlchemyError as e:
            raise SinkError(f"Could not provision {self._database}.{self._table.name}: {e}") from e

        self._engine = engine
        logger.info("Table '%s' is ready.", self._table.name)

    def write(self, payload: ExtractedPayload, run_date: date) -> int:
        engine = self._require_engine()
        try:
            with engine.begin() as conn:
                conn.execute(
                    insert(self._table).values(download_date=run_date, file_data=payload.text)
                )
        except SQLAlchemyError as e:
            raise SinkError(f"Insert into {self._table.name} failed: {e}") from e

        logger.info("Saved extracted text for %s", run_date.isoformat())
        return 1

    def count_rows(self, run_date: date | None = None) -> int:
        engine = self._require_engine()
        stmt = select(func.count()).select_from(self._table)
        if run_date is not None:
            stmt = stmt.where(self._table.c.download_date == run_date)
        with engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def _create_mysql_database(self) -> None:
        server_url = self._url.set(database=None)
        server_engine = create_engine(server_url)
        try:
            with server_engine.begin() as conn:
                conn.execute(text(f"CREATE DATABASE IF NOT EXISTS `{self._url.database}`"))
            logger.info("Database '%s' is ready.", self._url.database)
        finally:
            server_engine.dispose()

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise SinkNotProvisionedError("Sink is not provisioned; call ensure_schema() first")
        return self._engine
