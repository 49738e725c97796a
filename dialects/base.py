from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from contextlib import closing
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple

from dialects.errors import DiscoveryError, IntegrityToggleError, SequenceResetError
from dialects.params import ParamStyle
from dialects.queries import execute_statement, query_column, query_scalar
from loader.settings import DEFAULT_SEQUENCE_FLOOR, LoaderSettings
from utils.env_loader import load_environments

if TYPE_CHECKING:
    from loader.transaction import LoadTransaction

logger = logging.getLogger(__name__)

Statement = Tuple[str, Optional[Sequence[Any]]]


class DatabaseDialect(ABC):
    """Engine-specific half of a fixture load.

    A dialect is bound to one connection for its lifetime. ``init`` discovers
    the tables of the current database; the loader then uses the dialect to
    suspend referential integrity around the caller's load routine, reset
    identity generators afterwards and fingerprint table contents so repeated
    runs can tell whether anything changed.

    ``tables`` and ``tables_checksum`` are plain attributes and are not safe
    to mutate from several threads at once.
    """

    engine: str = "unknown"
    param_style: ParamStyle = ParamStyle.FORMAT
    default_port: Optional[int] = None

    database_name_query: Optional[str] = None
    tables_query: Optional[str] = None

    def __init__(
        self,
        settings: Optional[LoaderSettings] = None,
        source_config: Optional[Dict[str, Any]] = None,
    ):
        self.settings = settings or LoaderSettings()
        self.source_config = source_config or {}
        self.skip_reset_sequences = self.settings.skip_reset_sequences
        self.reset_sequences_to = self.settings.reset_sequences_to
        self.database_name: Optional[str] = None
        self.tables: List[str] = []
        self.tables_checksum: Optional[Dict[str, float]] = None
        self.initialized = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(database={self.database_name!r}, tables={len(self.tables)})"

    @property
    def sequence_floor(self) -> int:
        return self.reset_sequences_to or DEFAULT_SEQUENCE_FLOOR

    # ----------------------------
    # Schema discovery
    # ----------------------------
    def init(self, connection: Any) -> None:
        tables = self.discover_tables(connection)
        self.tables = tables
        self.initialized = True
        logger.debug("%s dialect discovered %d tables in %s", self.engine, len(tables), self.database_name)

    def current_database_name(self, queryable: Any) -> str:
        if not self.database_name_query:
            raise NotImplementedError
        try:
            name = query_scalar(queryable, self.database_name_query)
        except Exception as exc:
            raise DiscoveryError(f"Could not read current database name on {self.engine}: {exc}") from exc
        if not name:
            raise DiscoveryError(f"No database selected on the {self.engine} connection")
        return str(name)

    def discover_tables(self, queryable: Any) -> List[str]:
        if not self.tables_query:
            raise NotImplementedError
        db_name = self.current_database_name(queryable)
        try:
            tables = [str(t) for t in query_column(queryable, self.tables_query, (db_name,))]
        except Exception as exc:
            raise DiscoveryError(f"Could not list tables of {db_name}: {exc}") from exc
        self.database_name = db_name
        return tables

    # ----------------------------
    # Engine hooks
    # ----------------------------
    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        raise NotImplementedError

    def begin(self, connection: Any) -> None:
        """Open a transaction. DB-API drivers start one implicitly by default."""

    @abstractmethod
    def disable_integrity_statements(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def enable_integrity_statements(self) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def sequence_reset_statements(self, queryable: Any, floor: int) -> List[Statement]:
        raise NotImplementedError

    @abstractmethod
    def table_checksum(self, queryable: Any, table_name: str) -> float:
        raise NotImplementedError

    # ----------------------------
    # Integrity and sequences
    # ----------------------------
    def _toggle_integrity(self, transaction: "LoadTransaction", statements: List[str], action: str) -> None:
        try:
            for sql in statements:
                transaction.execute(sql)
        except Exception as exc:
            raise IntegrityToggleError(f"Could not {action} referential integrity on {self.engine}: {exc}") from exc

    def disable_integrity(self, transaction: "LoadTransaction") -> None:
        self._toggle_integrity(transaction, self.disable_integrity_statements(), "disable")

    def enable_integrity(self, transaction: "LoadTransaction") -> None:
        self._toggle_integrity(transaction, self.enable_integrity_statements(), "enable")

    def reset_sequences(self, connection: Any) -> None:
        floor = self.sequence_floor
        try:
            statements = self.sequence_reset_statements(connection, floor)
            with closing(connection.cursor()) as cur:
                for sql, params in statements:
                    execute_statement(cur, sql, params)
            connection.commit()
        except Exception as exc:
            try:
                connection.rollback()
            except Exception as rollback_exc:
                logger.warning("Rollback after failed sequence reset also failed: %s", rollback_exc)
            raise SequenceResetError(f"Could not reset sequences to {floor} on {self.engine}: {exc}") from exc
        logger.debug("%s dialect reset %d sequences to %d", self.engine, len(statements), floor)

    # ----------------------------
    # Load and change detection
    # ----------------------------
    def suspend_and_load(self, connection: Any, load_routine: Callable[["LoadTransaction"], Any]) -> None:
        from loader.orchestrator import suspend_and_load

        suspend_and_load(self, connection, load_routine)

    def is_table_modified(self, queryable: Any, table_name: str) -> bool:
        from loader.change_detector import is_table_modified

        return is_table_modified(self, queryable, table_name)

    def after_load(self, queryable: Any) -> None:
        from loader.change_detector import record_baseline

        record_baseline(self, queryable)

    # ----------------------------
    # Connections
    # ----------------------------
    def _server_params(self) -> Dict[str, Any]:
        load_environments()
        host = self.source_config.get("host") or os.getenv("DB_HOST")
        dbname = self.source_config.get("dbname") or os.getenv("DB_NAME")
        user = self.source_config.get("user") or os.getenv("DB_USER")
        password = self.source_config.get("password")
        if password is None:
            password = os.getenv("DB_PASSWORD")
        port_raw = self.source_config.get("port") or os.getenv("DB_PORT", str(self.default_port))
        if not host:
            raise ValueError("DB_HOST is required")
        if not dbname:
            raise ValueError("DB_NAME is required")
        if not user:
            raise ValueError("DB_USER is required")
        if password is None:
            raise ValueError("DB_PASSWORD is required")
        return {
            "host": host,
            "port": int(port_raw),
            "dbname": dbname,
            "user": user,
            "password": password,
        }

    def connect(self) -> Any:
        raise NotImplementedError(f"{self.engine} dialect cannot open its own connections")
