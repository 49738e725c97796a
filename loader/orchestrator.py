"""Engine-agnostic sequencing of a fixture load.

The orchestrator talks to a dialect only through ``DatabaseDialect``. It opens
the transaction, brackets the caller's load routine with integrity
suspension, and resets identity sequences once the transaction is over.

Every step reports failure as a ``DialectError`` and exactly one error reaches
the caller. The first error wins, with one override: failing to re-enable
integrity outranks the load routine's own failure. Cleanup errors that lose
are logged.
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from dialects.errors import DialectError, LoadRoutineError, UnsafeDatabaseError
from loader.transaction import LoadTransaction

if TYPE_CHECKING:
    from dialects.base import DatabaseDialect

logger = logging.getLogger(__name__)

LoadRoutine = Callable[[LoadTransaction], Any]


def _attempt(step: Callable[..., Any], *args: Any) -> Optional[DialectError]:
    try:
        step(*args)
    except DialectError as exc:
        return exc
    return None


def _first_error(
    current: Optional[DialectError],
    later: Optional[DialectError],
    step: str,
) -> Optional[DialectError]:
    if current is None:
        return later
    if later is not None:
        logger.warning("Ignoring %s failure after an earlier error: %s", step, later)
    return current


def _run_routine(load_routine: LoadRoutine, transaction: LoadTransaction) -> Optional[LoadRoutineError]:
    try:
        load_routine(transaction)
    except LoadRoutineError as exc:
        return exc
    except Exception as exc:
        error = LoadRoutineError(f"Fixture load routine failed: {exc}")
        error.__cause__ = exc
        return error
    return None


def _bracketed_load(
    dialect: "DatabaseDialect",
    transaction: LoadTransaction,
    load_routine: LoadRoutine,
) -> Optional[DialectError]:
    load_error: Optional[DialectError] = None
    try:
        load_error = _run_routine(load_routine, transaction)
    finally:
        toggle_error = _attempt(dialect.enable_integrity, transaction)

    if toggle_error is not None:
        if load_error is not None:
            logger.warning("Load routine error superseded by integrity re-enable failure: %s", load_error)
            toggle_error.superseded = load_error
            toggle_error.__context__ = load_error
        return toggle_error
    return load_error


def _load_in_transaction(
    dialect: "DatabaseDialect",
    connection: Any,
    load_routine: LoadRoutine,
) -> Optional[DialectError]:
    transaction = LoadTransaction(dialect, connection)
    error = _attempt(transaction.begin)
    if error is not None:
        return error

    try:
        error = _attempt(dialect.disable_integrity, transaction)
        if error is None:
            error = _bracketed_load(dialect, transaction, load_routine)
        if error is None:
            error = _attempt(transaction.commit)
    finally:
        release_error = _attempt(transaction.release)
    return _first_error(error, release_error, "rollback")


def suspend_and_load(dialect: "DatabaseDialect", connection: Any, load_routine: LoadRoutine) -> None:
    """Run ``load_routine`` in one transaction with referential integrity suspended.

    Identity sequences are reset after the transaction ends, whether it
    committed or rolled back, unless the dialect skips resets. A reset applied
    after a failed load is not undone.
    """
    if not dialect.initialized:
        raise DialectError(f"{dialect.engine} dialect must be initialised with init() before loading")

    error: Optional[DialectError] = None
    try:
        error = _load_in_transaction(dialect, connection, load_routine)
    finally:
        if not dialect.skip_reset_sequences:
            error = _first_error(error, _attempt(dialect.reset_sequences, connection), "sequence reset")

    if error is not None:
        raise error


def ensure_safe_database(dialect: "DatabaseDialect", connection: Any) -> None:
    pattern = dialect.settings.database_name_pattern
    if not pattern:
        return
    name = dialect.current_database_name(connection)
    if not re.search(pattern, name):
        raise UnsafeDatabaseError(f"Refusing to load fixtures into {name!r}: name does not match {pattern!r}")


def load_fixtures(dialect: "DatabaseDialect", connection: Any, load_routine: LoadRoutine) -> Dict[str, Any]:
    """Initialise if needed, load, then record the change-detection baseline."""
    started = time.monotonic()
    if not dialect.initialized:
        dialect.init(connection)
    ensure_safe_database(dialect, connection)

    dialect.suspend_and_load(connection, load_routine)
    first_baseline = dialect.tables_checksum is None
    dialect.after_load(connection)

    summary = {
        "engine": dialect.engine,
        "tables": len(dialect.tables),
        "sequences_reset": not dialect.skip_reset_sequences,
        "baseline_recorded": first_baseline,
        "elapsed_ms": int((time.monotonic() - started) * 1000),
    }
    logger.info(
        "Loaded fixtures into %d %s tables in %dms",
        summary["tables"],
        dialect.engine,
        summary["elapsed_ms"],
    )
    return summary
