from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from utils.env_loader import env_flag, env_int, env_str, load_environments

DEFAULT_SEQUENCE_FLOOR = 10000


class LoaderSettings(BaseModel):
    skip_reset_sequences: bool = Field(default=False, description="Leave identity generators untouched after a load")
    reset_sequences_to: int = Field(default=0, ge=0, description="Identity floor; 0 selects the default of 10000")
    use_deferred_constraints: bool = Field(
        default=False,
        description="PostgreSQL only: defer constraints instead of disabling triggers",
    )
    database_name_pattern: Optional[str] = Field(
        default=None,
        description="Regular expression the current database name must match before a load",
    )

    @field_validator("database_name_pattern")
    @classmethod
    def _compiles(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as exc:
                raise ValueError(f"database_name_pattern is not a valid regex: {exc}") from exc
        return value

    @classmethod
    def from_env(cls) -> "LoaderSettings":
        load_environments()
        return cls(
            skip_reset_sequences=env_flag("FIXTURES_SKIP_RESET_SEQUENCES"),
            reset_sequences_to=env_int("FIXTURES_RESET_SEQUENCES_TO"),
            use_deferred_constraints=env_flag("FIXTURES_USE_DEFERRED_CONSTRAINTS"),
            database_name_pattern=env_str("FIXTURES_DATABASE_NAME_PATTERN"),
        )
