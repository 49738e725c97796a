from __future__ import annotations

from typing import Any, List

from dialects.base import DatabaseDialect, Statement
from dialects.errors import ChecksumError, TableNotFoundError, TransactionError
from dialects.params import ParamStyle
from dialects.queries import query_column, query_scalar

# Order-independent: sum of 32-bit row hashes plus the row count.
CHECKSUM_QUERY = """
    SELECT (
        COUNT(*) + COALESCE(SUM(('x' || substr(md5(ROW(fixture_row.*)::text), 1, 8))::bit(32)::bigint), 0)
    )::float8
    FROM {table} AS fixture_row
"""

SEQUENCES_QUERY = """
    SELECT seq
    FROM (
        SELECT
            table_name,
            ordinal_position,
            pg_get_serial_sequence(quote_ident(table_schema) || '.' || quote_ident(table_name), column_name) AS seq
        FROM information_schema.columns
        WHERE table_schema = %s
          AND table_name = ANY(%s)
    ) cols
    WHERE seq IS NOT NULL
    ORDER BY table_name, ordinal_position
"""


class PostgresDialect(DatabaseDialect):
    engine = "postgres"
    param_style = ParamStyle.FORMAT
    default_port = 5432

    database_name_query = "SELECT current_schema()"
    tables_query = """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = %s
          AND table_type = 'BASE TABLE'
        ORDER BY table_name
    """

    def connect(self):
        import psycopg

        return psycopg.connect(**self._server_params())

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def begin(self, connection: Any) -> None:
        if getattr(connection, "autocommit", False):
            raise TransactionError("PostgreSQL connection is in autocommit mode; fixture loads need a transaction")

    def disable_integrity_statements(self) -> List[str]:
        if self.settings.use_deferred_constraints:
            return ["SET CONSTRAINTS ALL DEFERRED"]
        return [f"ALTER TABLE {self.quote_identifier(t)} DISABLE TRIGGER ALL" for t in self.tables]

    def enable_integrity_statements(self) -> List[str]:
        if self.settings.use_deferred_constraints:
            return ["SET CONSTRAINTS ALL IMMEDIATE"]
        return [f"ALTER TABLE {self.quote_identifier(t)} ENABLE TRIGGER ALL" for t in self.tables]

    def sequence_reset_statements(self, queryable: Any, floor: int) -> List[Statement]:
        if not self.tables:
            return []
        sequences = query_column(queryable, SEQUENCES_QUERY, (self.database_name, list(self.tables)))
        return [("SELECT setval(%s, %s, false)", (seq, floor)) for seq in sequences]

    def table_checksum(self, queryable: Any, table_name: str) -> float:
        quoted = self.quote_identifier(table_name)
        try:
            if query_scalar(queryable, "SELECT to_regclass(%s)", (quoted,)) is None:
                raise TableNotFoundError(f"Table {table_name} does not exist", table_name=table_name)
            value = query_scalar(queryable, CHECKSUM_QUERY.format(table=quoted))
        except ChecksumError:
            raise
        except Exception as exc:
            raise ChecksumError(f"Could not checksum table {table_name}: {exc}", table_name=table_name) from exc
        if value is None:
            raise TableNotFoundError(f"Table {table_name} has no checksum", table_name=table_name)
        return float(value)
