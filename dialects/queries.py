from __future__ import annotations

from contextlib import closing
from typing import Any, List, Optional, Sequence

Params = Optional[Sequence[Any]]


def execute_statement(cursor: Any, sql: str, params: Params = None) -> None:
    # sqlite3 rejects params=None, so only pass them when present.
    if params is None:
        cursor.execute(sql)
    else:
        cursor.execute(sql, params)


def query_rows(queryable: Any, sql: str, params: Params = None) -> List[Sequence[Any]]:
    with closing(queryable.cursor()) as cur:
        execute_statement(cur, sql, params)
        return list(cur.fetchall())


def query_row(queryable: Any, sql: str, params: Params = None) -> Optional[Sequence[Any]]:
    with closing(queryable.cursor()) as cur:
        execute_statement(cur, sql, params)
        return cur.fetchone()


def query_scalar(queryable: Any, sql: str, params: Params = None) -> Any:
    row = query_row(queryable, sql, params)
    if row is None:
        return None
    return row[0]


def query_column(queryable: Any, sql: str, params: Params = None) -> List[Any]:
    return [row[0] for row in query_rows(queryable, sql, params)]
