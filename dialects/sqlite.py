from __future__ import annotations

import hashlib
import os
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, List

from dialects.base import DatabaseDialect, Statement
from dialects.errors import ChecksumError, DiscoveryError, TableNotFoundError
from dialects.params import ParamStyle
from dialects.queries import execute_statement, query_column, query_rows, query_scalar
from utils.env_loader import load_environments


class SQLiteDialect(DatabaseDialect):
    engine = "sqlite"
    param_style = ParamStyle.QUESTION

    def _db_path(self) -> str:
        load_environments()
        raw = self.source_config.get("db_path") or os.getenv("SQLITE_DB_PATH")
        if not raw:
            raise ValueError("SQLITE_DB_PATH is required for sqlite dialect")
        if raw == ":memory:":
            return raw
        db_path = Path(str(raw))
        if not db_path.exists():
            raise ValueError(f"SQLite database file does not exist: {db_path}")
        return str(db_path)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path())
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def current_database_name(self, queryable: Any) -> str:
        try:
            rows = query_rows(queryable, "PRAGMA database_list")
        except Exception as exc:
            raise DiscoveryError(f"Could not list sqlite databases: {exc}") from exc
        for _seq, name, file in rows:
            if name == "main":
                return file or name
        raise DiscoveryError("SQLite connection has no main database")

    def discover_tables(self, queryable: Any) -> List[str]:
        db_name = self.current_database_name(queryable)
        try:
            tables = query_column(
                queryable,
                """
                SELECT name
                FROM sqlite_master
                WHERE type = 'table'
                  AND name NOT LIKE 'sqlite_%'
                ORDER BY name
                """,
            )
        except Exception as exc:
            raise DiscoveryError(f"Could not list tables of {db_name}: {exc}") from exc
        self.database_name = db_name
        return tables

    def begin(self, connection: Any) -> None:
        # PRAGMA defer_foreign_keys only holds inside a transaction.
        if getattr(connection, "autocommit", None) is False:
            # PEP 249 mode (Python 3.12+) always has one open.
            return
        if getattr(connection, "in_transaction", False):
            # Pending work is committed first, as MySQL's BEGIN does.
            connection.commit()
        with closing(connection.cursor()) as cur:
            execute_statement(cur, "BEGIN")

    def disable_integrity_statements(self) -> List[str]:
        return ["PRAGMA defer_foreign_keys = ON"]

    def enable_integrity_statements(self) -> List[str]:
        return ["PRAGMA defer_foreign_keys = OFF"]

    def sequence_reset_statements(self, queryable: Any, floor: int) -> List[Statement]:
        # Only AUTOINCREMENT tables keep a sqlite_sequence row.
        autoincrement = set(
            query_column(
                queryable,
                """
                SELECT name
                FROM sqlite_master
                WHERE type = 'table'
                  AND upper(sql) LIKE '%AUTOINCREMENT%'
                """,
            )
        )
        statements: List[Statement] = []
        for table_name in self.tables:
            if table_name not in autoincrement:
                continue
            statements.append(("DELETE FROM sqlite_sequence WHERE name = ?", (table_name,)))
            statements.append(("INSERT INTO sqlite_sequence (name, seq) VALUES (?, ?)", (table_name, floor - 1)))
        return statements

    def table_checksum(self, queryable: Any, table_name: str) -> float:
        try:
            exists = query_scalar(
                queryable,
                "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?",
                (table_name,),
            )
            if not exists:
                raise TableNotFoundError(f"Table {table_name} does not exist", table_name=table_name)
            rows = query_rows(queryable, f"SELECT * FROM {self.quote_identifier(table_name)}")
        except ChecksumError:
            raise
        except Exception as exc:
            raise ChecksumError(f"Could not checksum table {table_name}: {exc}", table_name=table_name) from exc

        digest = hashlib.sha1()
        for line in sorted(repr(tuple(row)) for row in rows):
            digest.update(line.encode("utf-8"))
            digest.update(b"\n")
        # 52 bits survive the float conversion exactly; 0 is reserved for "unknown".
        return float(int(digest.hexdigest()[:13], 16) or 1)
