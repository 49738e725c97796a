from __future__ import annotations

from typing import Optional


class DialectError(RuntimeError):
    """Base error. ``superseded`` holds an earlier error this one outranked, if any."""

    superseded: Optional["DialectError"] = None


class UnsupportedDialectError(DialectError):
    pass


class DiscoveryError(DialectError):
    pass


class IntegrityToggleError(DialectError):
    pass


class LoadRoutineError(DialectError):
    pass


class SequenceResetError(DialectError):
    pass


class TransactionError(DialectError):
    pass


class UnsafeDatabaseError(DialectError):
    pass


class ChecksumError(DialectError):
    """Raised when a table fingerprint cannot be computed.

    A caller asking whether a table changed should treat this as "possibly
    modified"; ``assume_modified`` is always true so the hint travels with the
    error.
    """

    assume_modified = True

    def __init__(self, message: str, table_name: Optional[str] = None):
        super().__init__(message)
        self.table_name = table_name


class TableNotFoundError(ChecksumError):
    pass
