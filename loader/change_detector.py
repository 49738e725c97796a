from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

if TYPE_CHECKING:
    from dialects.base import DatabaseDialect

logger = logging.getLogger(__name__)


def is_table_modified(dialect: "DatabaseDialect", queryable: Any, table_name: str) -> bool:
    """Whether ``table_name`` differs from the baseline recorded after the first load.

    A missing or zero baseline counts as modified. Checksum failures raise
    ``ChecksumError`` (whose ``assume_modified`` is true) rather than
    returning a guess.
    """
    checksum = dialect.table_checksum(queryable, table_name)
    baseline = (dialect.tables_checksum or {}).get(table_name, 0.0)
    modified = baseline == 0 or checksum != baseline
    logger.debug("Table %s checksum %s vs baseline %s (modified=%s)", table_name, checksum, baseline, modified)
    return modified


def record_baseline(dialect: "DatabaseDialect", queryable: Any) -> bool:
    """Snapshot every discovered table's checksum, once per dialect lifetime.

    Returns True when a snapshot was taken. Later calls leave the first
    snapshot in place, so change detection always compares against the state
    right after the very first load.
    """
    if dialect.tables_checksum is not None:
        return False

    snapshot: Dict[str, float] = {}
    for table_name in dialect.tables:
        snapshot[table_name] = dialect.table_checksum(queryable, table_name)
    dialect.tables_checksum = snapshot
    logger.debug("Recorded checksum baseline for %d tables", len(snapshot))
    return True


def modified_tables(
    dialect: "DatabaseDialect",
    queryable: Any,
    table_names: Optional[Iterable[str]] = None,
) -> List[str]:
    candidates = dialect.tables if table_names is None else list(table_names)
    return [t for t in candidates if is_table_modified(dialect, queryable, t)]
