"""Named database connections and parameterized clause building."""

from __future__ import annotations

from .clauses import build_insert_clause, build_set, build_where
from .config import ConnectionProfileConfig, DatabaseConfig, load_config
from .connections import AsyncpgDriver, Driver, DriverConnection, SqliteDriver
from .errors import (
    ConfigurationError,
    DriverError,
    MinisqlError,
    SessionNotFoundError,
    UnsupportedOperationError,
    UsageError,
)
from .models import ConnectionProfile, ParamType, Row
from .registry import ConnectionRegistry
from .session import Session, StatementResult

__version__ = "0.1.0"

__all__ = [
    "AsyncpgDriver",
    "ConfigurationError",
    "ConnectionProfile",
    "ConnectionProfileConfig",
    "ConnectionRegistry",
    "DatabaseConfig",
    "Driver",
    "DriverConnection",
    "DriverError",
    "MinisqlError",
    "ParamType",
    "Row",
    "Session",
    "SessionNotFoundError",
    "SqliteDriver",
    "StatementResult",
    "UnsupportedOperationError",
    "UsageError",
    "__version__",
    "build_insert_clause",
    "build_set",
    "build_where",
    "load_config",
]
