from __future__ import annotations

from typing import Any, List

from dialects.base import DatabaseDialect, Statement
from dialects.errors import ChecksumError, TableNotFoundError
from dialects.params import ParamStyle
from dialects.queries import query_row


class MySQLDialect(DatabaseDialect):
    engine = "mysql"
    param_style = ParamStyle.FORMAT
    default_port = 3306

    database_name_query = "SELECT DATABASE()"
    tables_query = """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = %s
          AND table_type = 'BASE TABLE'
        ORDER BY table_name
    """
    checksum_query = "CHECKSUM TABLE {table}"
    checksum_column = 1

    def connect(self):
        import pymysql

        params = self._server_params()
        return pymysql.connect(
            host=params["host"],
            port=params["port"],
            user=params["user"],
            password=params["password"],
            database=params["dbname"],
            autocommit=False,
        )

    def quote_identifier(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def begin(self, connection: Any) -> None:
        connection.begin()

    def disable_integrity_statements(self) -> List[str]:
        return ["SET FOREIGN_KEY_CHECKS = 0"]

    def enable_integrity_statements(self) -> List[str]:
        return ["SET FOREIGN_KEY_CHECKS = 1"]

    def sequence_reset_statements(self, queryable: Any, floor: int) -> List[Statement]:
        return [(f"ALTER TABLE {self.quote_identifier(t)} AUTO_INCREMENT = {int(floor)}", None) for t in self.tables]

    def table_checksum(self, queryable: Any, table_name: str) -> float:
        query = self.checksum_query.format(table=self.quote_identifier(table_name))
        try:
            row = query_row(queryable, query)
        except Exception as exc:
            raise ChecksumError(f"Could not checksum table {table_name}: {exc}", table_name=table_name) from exc
        if row is None or len(row) <= self.checksum_column or row[self.checksum_column] is None:
            raise TableNotFoundError(f"Table {table_name} does not exist", table_name=table_name)
        return float(row[self.checksum_column])
