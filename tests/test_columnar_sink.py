"""Tests for the DuckDB columnar sink."""

from datetime import date
from pathlib import Path

import duckdb
import pytest

from acquisition.domain import ExtractedPayload
from acquisition.sinks.base import SinkNotProvisionedError
from acquisition.sinks.columnar import DuckDBColumnarSink


@pytest.fixture
def sink(tmp_path: Path):
    with DuckDBColumnarSink(
        duckdb_path=str(tmp_path / "store" / "downloads.duckdb"),
        database="domain_downloads",
        table="downloads",
    ) as s:
        yield s


class TestDuckDBColumnarSink:
    def test_ensure_schema_is_idempotent(self, sink: DuckDBColumnarSink) -> None:
        sink.ensure_schema()
        sink.ensure_schema()

        conn = sink._connection
        tables = conn.execute(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_schema = 'domain_downloads' AND table_name = 'downloads'"
        ).fetchone()[0]
        schemas = conn.execute(
            "SELECT COUNT(*) FROM information_schema.schemata WHERE schema_name = 'domain_downloads'"
        ).fetchone()[0]

        assert tables == 1
        assert schemas == 1

    def test_write_inserts_one_row_per_line(self, sink: DuckDBColumnarSink) -> None:
        sink.ensure_schema()
        payload = ExtractedPayload(member_name="data.txt", text="", lines=("a.com", "b.net", "c.org"))

        written = sink.write(payload, date(2026, 10, 19))

        assert written == 3
        assert sink.count_rows(date(2026, 10, 19)) == 3
        rows = sink._connection.execute(
            f"SELECT extracted_date, file_data FROM {sink.table_fqn} ORDER BY file_data"
        ).fetchall()
        assert rows == [
            (date(2026, 10, 19), "a.com"),
            (date(2026, 10, 19), "b.net"),
            (date(2026, 10, 19), "c.org"),
        ]

    def test_write_splits_text_when_lines_missing(self, sink: DuckDBColumnarSink) -> None:
        sink.ensure_schema()
        payload = ExtractedPayload(member_name="data.txt", text="x\r\n\r\ny\n")

        assert sink.write(payload, date(2026, 10, 19)) == 2

    def test_empty_payload_writes_nothing(self, sink: DuckDBColumnarSink) -> None:
        sink.ensure_schema()

        assert sink.write(ExtractedPayload(member_name="data.txt", text="", lines=()), date(2026, 10, 19)) == 0
        assert sink.count_rows() == 0

    def test_write_before_provisioning_raises(self, sink: DuckDBColumnarSink) -> None:
        with pytest.raises(SinkNotProvisionedError):
            sink.write(ExtractedPayload(member_name="data.txt", text="a"), date(2026, 10, 19))

    def test_data_survives_reopen(self, tmp_path: Path) -> None:
        path = str(tmp_path / "downloads.duckdb")
        with DuckDBColumnarSink(duckdb_path=path, database="domain_downloads", table="downloads") as first:
            first.ensure_schema()
            first.write(ExtractedPayload(member_name="d.txt", text="", lines=("a",)), date(2026, 10, 18))

        with DuckDBColumnarSink(duckdb_path=path, database="domain_downloads", table="downloads") as second:
            second.ensure_schema()
            assert second.count_rows() == 1

        with duckdb.connect(path) as conn:
            assert conn.execute("SELECT file_data FROM domain_downloads.downloads").fetchall() == [("a",)]

    def test_bad_attach_sql_surfaces_as_sink_error(self, tmp_path: Path) -> None:
        from acquisition.sinks.base import SinkError

        with DuckDBColumnarSink(
            duckdb_path=str(tmp_path / "x.duckdb"),
            database="domain_downloads",
            table="downloads",
            ducklake_attach_sql="SELECT 1",
        ) as sink:
            with pytest.raises(SinkError):
                sink.ensure_schema()
