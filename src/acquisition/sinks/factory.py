from acquisition.config import ColumnarSinkSpec, RelationalSinkSpec
from acquisition.sinks.base import IngestSink
from acquisition.sinks.columnar import DuckDBColumnarSink
from acquisition.sinks.relational import SQLAlchemyRelationalSink


def build_sink(spec: ColumnarSinkSpec | RelationalSinkSpec) -> IngestSink:
    if isinstance(spec, ColumnarSinkSpec):
        return DuckDBColumnarSink(
            duckdb_path=spec.duckdb_path,
            database=spec.database,
            table=spec.table,
            ducklake_attach_sql=spec.ducklake_attach_sql,
        )
    if isinstance(spec, RelationalSinkSpec):
        return SQLAlchemyRelationalSink(url=spec.url, database=spec.database, table=spec.table)
    raise ValueError(f"Unsupported sink spec: {spec!r}")
