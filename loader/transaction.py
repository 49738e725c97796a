from __future__ import annotations

from contextlib import closing
from typing import TYPE_CHECKING, Any, Iterable, Optional, Sequence

from dialects.errors import TransactionError
from dialects.queries import execute_statement

if TYPE_CHECKING:
    from dialects.base import DatabaseDialect


class LoadTransaction:
    """The unit of work a fixture load runs in.

    Wraps one DB-API connection. Anything that is not committed is rolled back
    by ``release``. Exposes ``cursor()`` so it can stand in for a connection in the
    query helpers.
    """

    def __init__(self, dialect: "DatabaseDialect", connection: Any):
        self.dialect = dialect
        self.connection = connection
        self.state = "idle"

    @property
    def active(self) -> bool:
        return self.state == "open"

    def _require_open(self) -> None:
        if not self.active:
            raise TransactionError(f"Transaction is {self.state}, not open")

    def begin(self) -> None:
        if self.state != "idle":
            raise TransactionError(f"Transaction already {self.state}")
        try:
            self.dialect.begin(self.connection)
        except TransactionError:
            raise
        except Exception as exc:
            raise TransactionError(f"Could not begin transaction on {self.dialect.engine}: {exc}") from exc
        self.state = "open"

    def cursor(self) -> Any:
        self._require_open()
        return self.connection.cursor()

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        with closing(self.cursor()) as cur:
            execute_statement(cur, sql, params)
            return cur.rowcount

    def executemany(self, sql: str, seq_of_params: Iterable[Sequence[Any]]) -> int:
        rows = list(seq_of_params)
        if not rows:
            return 0
        with closing(self.cursor()) as cur:
            cur.executemany(sql, rows)
        return len(rows)

    def commit(self) -> None:
        self._require_open()
        try:
            self.connection.commit()
        except Exception as exc:
            raise TransactionError(f"Could not commit fixture load on {self.dialect.engine}: {exc}") from exc
        self.state = "committed"

    def rollback(self) -> None:
        self._require_open()
        try:
            self.connection.rollback()
        except Exception as exc:
            raise TransactionError(f"Could not roll back fixture load on {self.dialect.engine}: {exc}") from exc
        finally:
            self.state = "rolled_back"

    def release(self) -> None:
        if self.active:
            self.rollback()
