from __future__ import annotations

from enum import Enum
from typing import Optional


class ParamStyle(str, Enum):
    """Bind-parameter syntax a dialect's driver expects."""

    POSITIONAL = "numeric"
    NAMED = "named"
    QUESTION = "qmark"
    FORMAT = "format"

    def placeholder(self, index: int, name: Optional[str] = None) -> str:
        if index < 1:
            raise ValueError("placeholder index starts at 1")
        if self is ParamStyle.QUESTION:
            return "?"
        if self is ParamStyle.FORMAT:
            return "%s"
        if self is ParamStyle.NAMED:
            return f":{name or f'p{index}'}"
        return f"${index}"

    def placeholders(self, count: int) -> str:
        return ", ".join(self.placeholder(i) for i in range(1, count + 1))
