"""Runtime configuration for the task tracker."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DB_PATH = ".hod_tasks.db"
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(slots=True)
class StorageSettings:
    """SQLite storage settings."""

    busy_timeout_ms: int = 5_000


@dataclass(slots=True)
class ActorContextSettings:
    """Who the CLI acts as when no explicit actor is given."""

    actor_id: int | None = None


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    db_path: Path = Path(DEFAULT_DB_PATH)
    log_level: str = "WARNING"
    storage: StorageSettings = field(default_factory=StorageSettings)
    actor_context: ActorContextSettings = field(default_factory=ActorContextSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults for local use."""

        return cls(
            db_path=db_path or Path(os.getenv("HOD_TASKS_DB_PATH", DEFAULT_DB_PATH)),
            log_level=os.getenv("HOD_TASKS_LOG_LEVEL", "WARNING").strip().upper(),
            storage=StorageSettings(
                busy_timeout_ms=_env_int("HOD_TASKS_SQLITE_BUSY_TIMEOUT_MS", 5_000),
            ),
            actor_context=ActorContextSettings(
                actor_id=_env_optional_int("HOD_TASKS_ACTOR_ID"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for values the runtime cannot use."""

        if self.storage.busy_timeout_ms <= 0:
            raise ValueError("HOD_TASKS_SQLITE_BUSY_TIMEOUT_MS must be > 0.")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid HOD_TASKS_LOG_LEVEL: {self.log_level!r}. "
                f"Expected one of {', '.join(_LOG_LEVELS)}.",
            )

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_optional_int(name: str) -> int | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error
