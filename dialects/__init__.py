"""Database dialects: per-engine integrity, identity and checksum handling for fixture loads."""

from dialects.base import DatabaseDialect
from dialects.factory import get_dialect
from dialects.params import ParamStyle

__all__ = ["DatabaseDialect", "ParamStyle", "get_dialect"]
