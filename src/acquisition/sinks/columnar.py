import logging
import re
from contextlib import contextmanager
from datetime import date
from pathlib import Path

import duckdb
import pyarrow as pa

from acquisition.archive import split_lines
from acquisition.domain import ExtractedPayload
from acquisition.sinks.base import SinkError, SinkNotProvisionedError

logger = logging.getLogger(__name__)


DOWNLOADS_ARROW_SCHEMA = pa.schema(
    [
        pa.field("extracted_date", pa.date32(), nullable=False),
        pa.field("file_data", pa.string(), nullable=False),
    ]
)


class DuckDBColumnarSink:
    """
    Columnar sink backed by DuckDB (optionally a DuckLake catalog).

    One row per extracted line, tagged with the run date:
      <catalog>.<database>.<table> (extracted_date DATE, file_data VARCHAR)

    With DuckLake the table is partitioned by extracted_date on creation.
    """

    wants_lines = True

    def __init__(
        self,
        *,
        duckdb_path: str,
        database: str,
        table: str,
        ducklake_attach_sql: str | None = None,
    ):
        self._duckdb_path = duckdb_path
        self._database = database
        self._table = table
        self._ducklake_attach_sql = ducklake_attach_sql

        self._connection: duckdb.DuckDBPyConnection | None = None
        self._catalog: str | None = None
        self._ready = False

    def __enter__(self) -> "DuckDBColumnarSink":
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._connection = None
            self._ready = False

    @property
    def table_fqn(self) -> str:
        if not self._catalog:
            raise RuntimeError("Catalog not set (sink not connected?)")
        return f'"{self._catalog}".{self._database}.{self._table}'

    # ----------------------------
    # Public API
    # ----------------------------
    def ensure_schema(self) -> None:
        try:
            conn = self._connect()
            conn.execute(f'CREATE SCHEMA IF NOT EXISTS "{self._catalog}".{self._database}')

            existed = self._table_exists(conn)
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table_fqn} (
                  extracted_date DATE    NOT NULL,
                  file_data      VARCHAR NOT NULL
                );
                """
            )

            if not existed and self._ducklake_attach_sql:
                logger.info("Applying partitioning to %s: extracted_date", self.table_fqn)
                conn.execute(f"ALTER TABLE {self.table_fqn} SET PARTITIONED BY (extracted_date)")
        except (duckdb.Error, ValueError) as e:
            raise SinkError(f"Could not provision {self._database}.{self._table} in DuckDB: {e}") from e

        self._ready = True
        logger.info("DuckDB database and table are ready: %s", self.table_fqn)

    def write(self, payload: ExtractedPayload, run_date: date) -> int:
        conn = self._require_ready()
        lines = list(payload.lines) if payload.lines is not None else split_lines(payload.text)

        if not lines:
            logger.warning("Payload %s has no non-empty lines; nothing to insert", payload.member_name)
            return 0

        incoming = pa.Table.from_pydict(
            {"extracted_date": [run_date] * len(lines), "file_data": lines},
            schema=DOWNLOADS_ARROW_SCHEMA,
        )

        try:
            with self.transaction(conn) as tx:
                tx.register("incoming_rows", incoming)
                try:
                    tx.execute(
                        f"INSERT INTO {self.table_fqn} (extracted_date, file_data) "
                        f"SELECT extracted_date, file_data FROM incoming_rows"
                    )
                finally:
                    tx.unregister("incoming_rows")
        except duckdb.Error as e:
            raise SinkError(f"Insert into {self.table_fqn} failed: {e}") from e

        logger.info("Saved %s rows with extracted_date = %s to DuckDB.", len(lines), run_date.isoformat())
        return len(lines)

    def count_rows(self, run_date: date | None = None) -> int:
        conn = self._require_ready()
        if run_date is None:
            row = conn.execute(f"SELECT COUNT(*) FROM {self.table_fqn}").fetchone()
        else:
            row = conn.execute(
                f"SELECT COUNT(*) FROM {self.table_fqn} WHERE extracted_date = ?", [run_date]
            ).fetchone()
        return int(row[0]) if row else 0

    # ----------------------------
    # Connection / helpers
    # ----------------------------
    def _connect(self) -> duckdb.DuckDBPyConnection:
        if self._connection is not None:
            return self._connection

        if self._duckdb_path != ":memory:":
            Path(self._duckdb_path).parent.mkdir(parents=True, exist_ok=True)

        conn = duckdb.connect(self._duckdb_path)
        try:
            if self._ducklake_attach_sql:
                conn.execute(self._ducklake_attach_sql)
                self._catalog = self._parse_catalog_name(self._ducklake_attach_sql)
            else:
                row = conn.execute("SELECT current_database()").fetchone()
                self._catalog = row[0]
        except Exception:
            conn.close()
            raise

        self._connection = conn
        logger.debug("DuckDB connected. catalog=%s duckdb=%s", self._catalog, self._duckdb_path)
        return conn

    def _require_ready(self) -> duckdb.DuckDBPyConnection:
        if not self._ready or self._connection is None:
            raise SinkNotProvisionedError("Sink is not provisioned; call ensure_schema() first")
        return self._connection

    def _table_exists(self, conn: duckdb.DuckDBPyConnection) -> bool:
        exists = conn.execute(
            """
            SELECT 1
            FROM information_schema.tables
            WHERE table_catalog = ? AND table_schema = ? AND table_name = ?
            LIMIT 1;
            """,
            [self._catalog, self._database, self._table],
        ).fetchone()
        return exists is not None

    @staticmethod
    def _parse_catalog_name(attach_sql: str) -> str:
        match = re.search(r"\bAS\s+([A-Za-z_][A-Za-z0-9_]*)\b", attach_sql, flags=re.IGNORECASE)
        if not match:
            raise ValueError(
                "Could not parse catalog name from ducklake_attach_sql. "
                "Expected: ATTACH 'ducklake:...' AS <catalog_name>;"
            )
        return match.group(1)

    @contextmanager
    def transaction(self, conn: duckdb.DuckDBPyConnection):
        conn.execute("BEGIN TRANSACTION")
        try:
            yield conn
        except Exception:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")
