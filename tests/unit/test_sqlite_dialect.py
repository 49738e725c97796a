import sqlite3
import sys

import pytest

from dialects.errors import LoadRoutineError, TableNotFoundError, UnsafeDatabaseError
from dialects.params import ParamStyle
from dialects.sqlite import SQLiteDialect
from loader.orchestrator import load_fixtures
from loader.settings import LoaderSettings


def _integrity_state(conn):
    foreign_keys = conn.execute("PRAGMA foreign_keys").fetchone()[0]
    deferred = conn.execute("PRAGMA defer_foreign_keys").fetchone()[0]
    return foreign_keys, deferred


def _count(conn, table):
    return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def _dialect(conn, **settings):
    dialect = SQLiteDialect(settings=LoaderSettings(**settings))
    dialect.init(conn)
    return dialect


def test_sqlite_dialect_discovers_base_tables_only(sqlite_conn):
    dialect = _dialect(sqlite_conn)
    assert dialect.tables == ["items", "orders", "users"]
    assert dialect.database_name.endswith("fixtures_test.db")
    assert dialect.initialized is True
    assert dialect.param_style is ParamStyle.QUESTION
    assert dialect.quote_identifier('we"ird') == '"we""ird"'


def test_failed_load_rolls_back_and_restores_integrity(sqlite_conn):
    dialect = _dialect(sqlite_conn)
    assert _integrity_state(sqlite_conn) == (1, 0)

    def routine(tx):
        tx.executemany("INSERT INTO users (name) VALUES (?)", [("ann",), ("bob",), ("cy",)])
        tx.execute("INSERT INTO orders (user_id, total, coupon) VALUES (?, ?, ?)", (1, 9.5, "X"))

    with pytest.raises(LoadRoutineError) as excinfo:
        dialect.suspend_and_load(sqlite_conn, routine)

    assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)
    assert _count(sqlite_conn, "users") == 0
    assert _integrity_state(sqlite_conn) == (1, 0)


def test_successful_load_is_visible_and_accepts_any_table_order(sqlite_conn, tmp_path):
    dialect = _dialect(sqlite_conn)

    def routine(tx):
        tx.execute("DELETE FROM orders")
        tx.execute("DELETE FROM users")
        tx.execute("INSERT INTO orders (id, user_id, total) VALUES (?, ?, ?)", (1, 7, 120.0))
        tx.execute("INSERT INTO users (id, name) VALUES (?, ?)", (7, "ann"))

    dialect.suspend_and_load(sqlite_conn, routine)

    other = sqlite3.connect(str(tmp_path / "fixtures_test.db"))
    try:
        assert other.execute("SELECT user_id, total FROM orders").fetchall() == [(7, 120.0)]
        assert other.execute("SELECT name FROM users").fetchall() == [("ann",)]
    finally:
        other.close()
    assert _integrity_state(sqlite_conn) == (1, 0)


def test_default_sequence_floor_applies_to_every_autoincrement_table(sqlite_conn):
    dialect = _dialect(sqlite_conn)
    dialect.suspend_and_load(sqlite_conn, lambda tx: tx.execute("INSERT INTO users (name) VALUES ('ann')"))

    for table, column, value in (("users", "name", "bob"), ("items", "sku", "A-1")):
        cur = sqlite_conn.execute(f"INSERT INTO {table} ({column}) VALUES (?)", (value,))
        assert cur.lastrowid >= 10000
    sqlite_conn.commit()


def test_custom_sequence_floor(sqlite_conn):
    dialect = _dialect(sqlite_conn, reset_sequences_to=500)
    dialect.suspend_and_load(sqlite_conn, lambda tx: tx.execute("INSERT INTO items (sku) VALUES ('A-1')"))

    cur = sqlite_conn.execute("INSERT INTO items (sku) VALUES ('A-2')")
    sqlite_conn.commit()
    assert cur.lastrowid >= 500


def test_sequences_still_reset_after_failed_load(sqlite_conn):
    dialect = _dialect(sqlite_conn, reset_sequences_to=300)

    def routine(tx):
        raise ValueError("bad fixture")

    with pytest.raises(LoadRoutineError, match="bad fixture"):
        dialect.suspend_and_load(sqlite_conn, routine)

    seq = sqlite_conn.execute("SELECT seq FROM sqlite_sequence WHERE name = 'items'").fetchone()[0]
    assert seq == 299


def test_skip_reset_sequences_leaves_generators_alone(sqlite_conn):
    dialect = _dialect(sqlite_conn, skip_reset_sequences=True)
    dialect.suspend_and_load(sqlite_conn, lambda tx: tx.execute("INSERT INTO items (sku) VALUES ('A-1')"))

    cur = sqlite_conn.execute("INSERT INTO items (sku) VALUES ('A-2')")
    sqlite_conn.commit()
    assert cur.lastrowid == 2


def test_baseline_is_frozen_after_first_load(sqlite_conn):
    dialect = _dialect(sqlite_conn)

    summary = load_fixtures(dialect, sqlite_conn, lambda tx: tx.execute("INSERT INTO items (sku) VALUES ('A-1')"))
    assert summary["baseline_recorded"] is True
    baseline = dict(dialect.tables_checksum)
    assert set(baseline) == {"items", "orders", "users"}
    assert dialect.is_table_modified(sqlite_conn, "items") is False

    sqlite_conn.execute("INSERT INTO items (sku) VALUES ('B-1')")
    sqlite_conn.commit()
    assert dialect.is_table_modified(sqlite_conn, "items") is True

    dialect.after_load(sqlite_conn)
    assert dialect.tables_checksum == baseline
    assert dialect.is_table_modified(sqlite_conn, "items") is True

    sqlite_conn.execute("DELETE FROM items WHERE sku = 'B-1'")
    sqlite_conn.commit()
    assert dialect.is_table_modified(sqlite_conn, "items") is False


def test_change_detection_without_baseline_and_for_missing_table(sqlite_conn):
    dialect = _dialect(sqlite_conn)
    assert dialect.tables_checksum is None
    assert dialect.is_table_modified(sqlite_conn, "users") is True

    with pytest.raises(TableNotFoundError) as excinfo:
        dialect.is_table_modified(sqlite_conn, "ghosts")
    assert excinfo.value.assume_modified is True
    assert excinfo.value.table_name == "ghosts"


def test_checksum_ignores_row_order_and_never_returns_zero(sqlite_conn):
    dialect = _dialect(sqlite_conn)
    empty = dialect.table_checksum(sqlite_conn, "items")
    assert empty != 0

    sqlite_conn.execute("INSERT INTO items (id, sku) VALUES (1, 'a')")
    sqlite_conn.execute("INSERT INTO items (id, sku) VALUES (2, 'b')")
    sqlite_conn.commit()
    first = dialect.table_checksum(sqlite_conn, "items")

    sqlite_conn.execute("DELETE FROM items")
    sqlite_conn.execute("INSERT INTO items (id, sku) VALUES (2, 'b')")
    sqlite_conn.execute("INSERT INTO items (id, sku) VALUES (1, 'a')")
    sqlite_conn.commit()
    assert dialect.table_checksum(sqlite_conn, "items") == first != empty


def test_load_fixtures_guards_database_name(sqlite_conn):
    dialect = SQLiteDialect(settings=LoaderSettings(database_name_pattern=r"^/prod/"))
    with pytest.raises(UnsafeDatabaseError, match="Refusing to load fixtures"):
        load_fixtures(dialect, sqlite_conn, lambda tx: None)
    assert dialect.tables_checksum is None

    allowed = SQLiteDialect(settings=LoaderSettings(database_name_pattern=r"_test\.db$"))
    summary = load_fixtures(allowed, sqlite_conn, lambda tx: None)
    assert summary["engine"] == "sqlite"
    assert summary["tables"] == 3


def test_sqlite_connect_uses_source_config(tmp_path):
    db_path = tmp_path / "fixtures_test.db"
    sqlite3.connect(str(db_path)).close()

    conn = SQLiteDialect(source_config={"db_path": str(db_path)}).connect()
    try:
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    finally:
        conn.close()

    with pytest.raises(ValueError, match="does not exist"):
        SQLiteDialect(source_config={"db_path": str(tmp_path / "missing.db")}).connect()


def test_pending_work_is_committed_before_the_load_begins(sqlite_conn, tmp_path):
    dialect = _dialect(sqlite_conn, skip_reset_sequences=True)
    sqlite_conn.execute("INSERT INTO items (sku) VALUES ('pending')")
    assert sqlite_conn.in_transaction

    dialect.suspend_and_load(sqlite_conn, lambda tx: tx.execute("INSERT INTO items (sku) VALUES ('loaded')"))

    other = sqlite3.connect(str(tmp_path / "fixtures_test.db"))
    try:
        skus = [row[0] for row in other.execute("SELECT sku FROM items ORDER BY id")]
    finally:
        other.close()
    assert skus == ["pending", "loaded"]
    assert _integrity_state(sqlite_conn) == (1, 0)


@pytest.mark.skipif(sys.version_info < (3, 12), reason="sqlite3 autocommit attribute needs Python 3.12")
def test_pep249_transaction_mode_connection(sqlite_conn, tmp_path):
    db_path = str(tmp_path / "fixtures_test.db")
    conn = sqlite3.connect(db_path, autocommit=False)
    try:
        dialect = _dialect(conn, reset_sequences_to=400)
        dialect.suspend_and_load(conn, lambda tx: tx.execute("INSERT INTO items (sku) VALUES ('A-1')"))

        cur = conn.execute("INSERT INTO items (sku) VALUES ('A-2')")
        conn.commit()
        assert cur.lastrowid >= 400
    finally:
        conn.close()

    other = sqlite3.connect(db_path)
    try:
        assert _count(other, "items") == 2
    finally:
        other.close()
