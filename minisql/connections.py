"""Driver adapters that sessions prepare, bind and execute statements through."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import re
import sqlite3
import threading
from typing import Any, Coroutine, Protocol, runtime_checkable

import asyncpg

from .errors import DriverError, UnsupportedOperationError
from .models import ConnectionProfile, Row

LOG = logging.getLogger(__name__)


@runtime_checkable
class StatementHandle(Protocol):
    """Prepared statement state owned by a driver connection."""

    sql: str
    params: dict[str, object]


@runtime_checkable
class DriverConnection(Protocol):
    """Protocol implemented by live driver connections."""

    requires_typed_binding: bool

    def prepare(self, sql: str) -> StatementHandle:
        """Prepare ``sql`` (named ``:param`` placeholders) for execution."""

    def bind_scalar(self, statement: StatementHandle, name: str, value: object) -> None:
        """Bind one value under placeholder ``name``."""

    def execute(self, statement: StatementHandle) -> bool:
        """Run the statement with its bound values."""

    def row_count(self, statement: StatementHandle) -> int:
        """Rows affected or returned by the last execution of ``statement``."""

    def fetch_all(self, statement: StatementHandle) -> list[Row]:
        """Remaining result rows of ``statement``."""

    def fetch_one(self, statement: StatementHandle) -> Row | None:
        """Next result row of ``statement``, or None when exhausted."""

    def last_insert_id(self) -> str:
        """Most recent auto-generated identifier on this connection."""

    def insert_ignore_sql(self, table: str, clause: str) -> str:
        """Render an insert that skips rows conflicting with existing keys."""

    def begin_transaction(self) -> bool: ...

    def commit(self) -> bool: ...

    def rollback(self) -> bool: ...

    def close(self) -> None: ...


@runtime_checkable
class Driver(Protocol):
    """Factory opening driver connections for a profile."""

    def connect(self, profile: ConnectionProfile) -> DriverConnection:
        """Open a connection; raises DriverError on failure."""


@dataclass(slots=True)
class BufferedStatement:
    """Statement whose result rows are materialized on execution."""

    sql: str
    params: dict[str, object] = field(default_factory=dict)
    rows: list[Row] = field(default_factory=list)
    rowcount: int = 0
    position: int = 0

    def load(self, rows: list[Row], rowcount: int) -> None:
        self.rows = rows
        self.rowcount = rowcount
        self.position = 0

    def next_row(self) -> Row | None:
        if self.position >= len(self.rows):
            return None
        row = self.rows[self.position]
        self.position += 1
        return row

    def remaining_rows(self) -> list[Row]:
        rows = self.rows[self.position :]
        self.position = len(self.rows)
        return rows


class _BufferedRowsMixin:
    """Row accessors shared by adapters that buffer results."""

    def bind_scalar(self, statement: BufferedStatement, name: str, value: object) -> None:
        statement.params[name] = value

    def row_count(self, statement: BufferedStatement) -> int:
        return statement.rowcount

    def fetch_all(self, statement: BufferedStatement) -> list[Row]:
        return statement.remaining_rows()

    def fetch_one(self, statement: BufferedStatement) -> Row | None:
        return statement.next_row()


class SqliteConnection(_BufferedRowsMixin):
    """SQLite connection in autocommit mode with explicit transactions."""

    requires_typed_binding = False

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def prepare(self, sql: str) -> BufferedStatement:
        return BufferedStatement(sql=sql)

    def execute(self, statement: BufferedStatement) -> bool:
        try:
            cursor = self._conn.execute(statement.sql, statement.params)
            rows = [dict(row) for row in cursor.fetchall()] if cursor.description else []
        except sqlite3.Error as exc:
            raise DriverError(f"Failed to execute statement: {exc}") from exc
        rowcount = len(rows) if cursor.description else max(cursor.rowcount, 0)
        statement.load(rows, rowcount)
        return True

    def last_insert_id(self) -> str:
        value = self._fetch_scalar("SELECT last_insert_rowid()")
        return "" if value is None else str(value)

    def insert_ignore_sql(self, table: str, clause: str) -> str:
        return f"INSERT OR IGNORE INTO {table} {clause}"

    def begin_transaction(self) -> bool:
        return self._control("BEGIN")

    def commit(self) -> bool:
        return self._control("COMMIT")

    def rollback(self) -> bool:
        return self._control("ROLLBACK")

    def close(self) -> None:
        try:
            self._conn.close()
        except sqlite3.Error as exc:
            raise DriverError(f"Failed to close connection: {exc}") from exc

    def _control(self, command: str) -> bool:
        try:
            self._conn.execute(command)
        except sqlite3.Error as exc:
            raise DriverError(f"{command} failed: {exc}") from exc
        return True

    def _fetch_scalar(self, sql: str) -> object:
        try:
            row = self._conn.execute(sql).fetchone()
        except sqlite3.Error as exc:
            raise DriverError(str(exc)) from exc
        return row[0] if row else None


class SqliteDriver:
    """Opens SQLite databases; ``dbname`` is the database path."""

    def connect(self, profile: ConnectionProfile) -> SqliteConnection:
        try:
            conn = sqlite3.connect(
                profile.dbname,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON;")
        except sqlite3.Error as exc:
            raise DriverError(f"Failed to open SQLite database '{profile.dbname}': {exc}") from exc
        return SqliteConnection(conn)


_NAMED_PLACEHOLDER = re.compile(
    r"'(?:[^']|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|--[^\n]*"
    r"|/\*.*?\*/"
    r"|(?<![:\w]):([A-Za-z_][A-Za-z0-9_]*)",
    re.DOTALL,
)


def to_positional(sql: str) -> tuple[str, tuple[str, ...]]:
    """Rewrite ``:name`` placeholders as ``$n``.

    ``::type`` casts, quoted literals, quoted identifiers and comments are left
    alone; dollar-quoted bodies are not recognized. Repeated names share one
    position. Returns the new SQL and the names in positional order.
    """

    names: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name is None:
            return match.group(0)
        if name not in names:
            names.append(name)
        return f"${names.index(name) + 1}"

    return _NAMED_PLACEHOLDER.sub(_replace, sql), tuple(names)


def _status_row_count(status: str | None, fetched: int) -> int:
    """Extract the row count from a command tag such as ``UPDATE 3``."""

    if status:
        tail = status.rsplit(None, 1)[-1]
        if tail.isdigit():
            return int(tail)
    return fetched


@dataclass(slots=True)
class AsyncpgStatement(BufferedStatement):
    """Server-side prepared statement plus its positional parameter names."""

    names: tuple[str, ...] = ()
    prepared: Any = None


class AsyncpgConnection(_BufferedRowsMixin):
    """Blocking facade over an asyncpg connection running on its own event loop."""

    requires_typed_binding = True

    def __init__(self, conn: Any, loop: asyncio.AbstractEventLoop, thread: threading.Thread) -> None:
        self._conn = conn
        self._loop = loop
        self._loop_thread = thread
        self._closed = False

    def prepare(self, sql: str) -> AsyncpgStatement:
        text, names = to_positional(sql)
        prepared = self._run(self._conn.prepare(text), "prepare statement")
        return AsyncpgStatement(sql=sql, names=names, prepared=prepared)

    def execute(self, statement: AsyncpgStatement) -> bool:
        missing = [name for name in statement.names if name not in statement.params]
        if missing:
            raise DriverError(f"No value bound for parameter(s): {', '.join(missing)}")
        args = [statement.params[name] for name in statement.names]
        records = self._run(statement.prepared.fetch(*args), "execute statement")
        rows: list[Row] = [dict(record.items()) for record in records]
        statement.load(rows, _status_row_count(statement.prepared.get_statusmsg(), len(rows)))
        return True

    def last_insert_id(self) -> str:
        return self._run(self._lastval(), "read last insert id")

    def insert_ignore_sql(self, table: str, clause: str) -> str:
        return f"INSERT INTO {table} {clause} ON CONFLICT DO NOTHING"

    def begin_transaction(self) -> bool:
        self._run(self._conn.execute("BEGIN"), "begin transaction")
        return True

    def commit(self) -> bool:
        self._run(self._conn.execute("COMMIT"), "commit")
        return True

    def rollback(self) -> bool:
        self._run(self._conn.execute("ROLLBACK"), "roll back")
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._run(self._conn.close(), "close connection")
        finally:
            _stop_loop(self._loop, self._loop_thread)

    async def _lastval(self) -> str:
        try:
            value = await self._conn.fetchval("SELECT lastval()")
        except asyncpg.exceptions.ObjectNotInPrerequisiteStateError:
            # no sequence has been used in this session yet
            return ""
        return "" if value is None else str(value)

    def _run(self, coro: Coroutine[Any, Any, Any], action: str) -> Any:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result()
        except Exception as exc:
            raise DriverError(f"Failed to {action}: {exc}") from exc


class AsyncpgDriver:
    """Driver that talks to PostgreSQL via asyncpg."""

    def __init__(self, *, connect_timeout: float = 5.0) -> None:
        self._connect_timeout = connect_timeout

    def connect(self, profile: ConnectionProfile) -> AsyncpgConnection:
        loop = asyncio.new_event_loop()
        thread = threading.Thread(
            target=loop.run_forever,
            name=f"minisql-asyncpg-{profile.dbname}",
            daemon=True,
        )
        thread.start()
        future = asyncio.run_coroutine_threadsafe(self._connect(profile), loop)
        try:
            conn = future.result()
        except Exception as exc:
            _stop_loop(loop, thread)
            raise DriverError(
                f"Failed to connect to database '{profile.dbname}' on '{profile.host}': {exc}"
            ) from exc
        return AsyncpgConnection(conn, loop, thread)

    async def _connect(self, profile: ConnectionProfile) -> Any:
        kwargs: dict[str, object] = {
            "host": profile.host,
            "database": profile.dbname,
            "user": profile.user,
            "password": profile.password,
            "timeout": self._connect_timeout,
        }
        if profile.port is not None:
            kwargs["port"] = profile.port
        return await asyncpg.connect(**kwargs)


def _stop_loop(loop: asyncio.AbstractEventLoop, thread: threading.Thread) -> None:
    if loop.is_running():
        loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=1)
    if not thread.is_alive():
        loop.close()


def default_drivers() -> dict[str, Driver]:
    """Drivers available to registries that are not given their own."""

    return {
        "postgresql": AsyncpgDriver(),
        "sqlite": SqliteDriver(),
    }


class NoInsertIgnoreMixin:
    """Mixin for adapters whose dialect has no insert-ignore form."""

    def insert_ignore_sql(self, table: str, clause: str) -> str:
        raise UnsupportedOperationError(
            f"{type(self).__name__} does not support insert-ignore; use insert() and handle conflicts."
        )


__all__ = [
    "AsyncpgConnection",
    "AsyncpgDriver",
    "AsyncpgStatement",
    "BufferedStatement",
    "Driver",
    "DriverConnection",
    "NoInsertIgnoreMixin",
    "SqliteConnection",
    "SqliteDriver",
    "StatementHandle",
    "default_drivers",
    "to_positional",
]
