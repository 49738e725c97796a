from __future__ import annotations

import os
from typing import Any, Dict, Optional

from dialects.base import DatabaseDialect
from dialects.errors import UnsupportedDialectError
from dialects.mysql import MySQLDialect
from dialects.postgres import PostgresDialect
from dialects.sqlite import SQLiteDialect
from dialects.tidb import TiDBDialect
from loader.settings import LoaderSettings
from utils.env_loader import load_environments


def get_dialect(
    db_engine: Optional[str] = None,
    settings: Optional[LoaderSettings] = None,
    source_config: Optional[Dict[str, Any]] = None,
) -> DatabaseDialect:
    load_environments()
    engine = (db_engine or os.getenv("DB_ENGINE", "postgres")).strip().lower()
    settings = settings or LoaderSettings.from_env()
    if engine in {"postgres", "postgresql"}:
        return PostgresDialect(settings=settings, source_config=source_config)
    if engine in {"mysql", "mariadb"}:
        return MySQLDialect(settings=settings, source_config=source_config)
    if engine == "tidb":
        return TiDBDialect(settings=settings, source_config=source_config)
    if engine in {"sqlite", "sqlite3"}:
        return SQLiteDialect(settings=settings, source_config=source_config)
    raise UnsupportedDialectError(f"Unsupported db_engine: {engine}")
