import re
import sqlite3

import pytest


def _normalize(sql):
    return re.sub(r"\s+", " ", sql.strip())


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.rows = []
        self.rowcount = -1

    def execute(self, sql, params=None):
        normalized = _normalize(sql)
        self.conn.executed.append((normalized, params))
        for pattern, response in self.conn.responses:
            if pattern in normalized:
                if isinstance(response, Exception):
                    raise response
                self.rows = list(response(params) if callable(response) else response)
                break
        else:
            self.rows = []
        self.rowcount = len(self.rows)

    def executemany(self, sql, rows):
        for params in rows:
            self.execute(sql, params)

    def fetchone(self):
        return self.rows[0] if self.rows else None

    def fetchall(self):
        return list(self.rows)

    def close(self):
        self.conn.closed_cursors += 1


class FakeConnection:
    """Records statements and answers queries whose SQL contains a registered substring."""

    def __init__(self, responses=None, autocommit=False):
        self.responses = list(responses or [])
        self.autocommit = autocommit
        self.executed = []
        self.events = []
        self.closed_cursors = 0

    def respond(self, pattern, response):
        self.responses.insert(0, (pattern, response))

    def cursor(self):
        return FakeCursor(self)

    def begin(self):
        self.events.append("begin")

    def commit(self):
        self.events.append("commit")

    def rollback(self):
        self.events.append("rollback")

    def statements(self):
        return [sql for sql, _params in self.executed]


@pytest.fixture
def fake_connection():
    return FakeConnection


@pytest.fixture
def sqlite_conn(tmp_path):
    conn = sqlite3.connect(str(tmp_path / "fixtures_test.db"))
    conn.execute("PRAGMA foreign_keys = ON")
    conn.executescript(
        """
        CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL);
        CREATE TABLE orders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id),
            total REAL NOT NULL
        );
        CREATE TABLE items (id INTEGER PRIMARY KEY AUTOINCREMENT, sku TEXT NOT NULL);
        CREATE VIEW big_orders AS SELECT * FROM orders WHERE total > 100;
        """
    )
    conn.commit()
    try:
        yield conn
    finally:
        conn.close()
