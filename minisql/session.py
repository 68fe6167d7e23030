"""Sessions: one live driver connection plus its current prepared statement."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Iterator, Mapping

from .binding import bind_params, expand_params
from .clauses import build_insert_clause, build_set, build_where
from .connections import Driver, DriverConnection, StatementHandle
from .errors import UsageError
from .models import ConnectionProfile, ParamType, Row

LOG = logging.getLogger(__name__)

WHERE_PREFIX = "w_"


class StatementResult:
    """Live handle on an executed statement."""

    def __init__(self, connection: DriverConnection, statement: StatementHandle) -> None:
        self._connection = connection
        self._statement = statement

    @property
    def sql(self) -> str:
        return self._statement.sql

    @property
    def row_count(self) -> int:
        return self._connection.row_count(self._statement)

    def fetch_all(self) -> list[Row]:
        return self._connection.fetch_all(self._statement)

    def fetch_one(self) -> Row | None:
        return self._connection.fetch_one(self._statement)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.fetch_all())


class Session:
    """A named database connection exposing CRUD helpers.

    Every ``query`` call replaces the current statement, so binding and
    executing always target the most recently prepared SQL. A session is not
    safe to share between threads without external locking.
    """

    def __init__(
        self,
        profile: ConnectionProfile,
        driver: Driver,
        *,
        name: str | None = None,
        typed_binding: bool = False,
    ) -> None:
        self._profile = profile
        self._name = name or profile.dbname
        self._connection: DriverConnection = driver.connect(profile)
        self._typed_binding = typed_binding or bool(getattr(self._connection, "requires_typed_binding", False))
        self._statement: StatementHandle | None = None
        self._executed = False
        self._in_transaction = False
        self._closed = False
        LOG.info("Opened session '%s' (%s on %s)", self._name, profile.dbname, profile.host)

    @property
    def name(self) -> str:
        return self._name

    @property
    def profile(self) -> ConnectionProfile:
        return self._profile

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def closed(self) -> bool:
        return self._closed

    # -- low level ---------------------------------------------------------

    def query(self, sql: str) -> StatementHandle:
        """Prepare ``sql``, replacing the current statement."""

        connection = self._live_connection()
        LOG.debug("[%s] prepare: %s", self._name, sql)
        self._statement = None
        self._executed = False
        self._statement = connection.prepare(sql)
        return self._statement

    def bind(self, params: Mapping[str, Any], param_type: ParamType | None = None) -> None:
        """Bind ``params`` onto the current statement; lists expand to ``name_i``."""

        connection = self._live_connection()
        bind_params(
            connection,
            self._statement,
            params,
            param_type=param_type,
            typed=self._typed_binding,
        )

    def execute(self) -> bool:
        """Execute the current statement."""

        connection = self._live_connection()
        statement = self._require_statement("execute")
        LOG.debug("[%s] execute: %s", self._name, statement.sql)
        self._executed = False
        result = connection.execute(statement)
        self._executed = True
        return result

    def row_count(self) -> int:
        """Rows affected or returned by the last executed statement."""

        connection = self._live_connection()
        statement = self._require_statement("read the row count")
        if not self._executed:
            raise UsageError("The current statement has not been executed.")
        return connection.row_count(statement)

    def last_insert_id(self) -> str:
        """Identifier generated by the most recent insert on this connection."""

        return self._live_connection().last_insert_id()

    def debug_dump_params(self) -> str:
        """Describe the current statement and the parameters bound to it."""

        statement = self._require_statement("dump parameters")
        lines = [f"SQL: [{len(statement.sql)}] {statement.sql}", f"Params: {len(statement.params)}"]
        for position, key in enumerate(statement.params):
            lines.append(f"Key: Name: [{len(key) + 1}] :{key}")
            lines.append(f"paramno={position}")
        return "\n".join(lines)

    # -- high level --------------------------------------------------------

    def execute_query(self, sql: str, params: Mapping[str, Any] | None = None) -> StatementResult:
        """Run ``sql`` and return a handle to its results."""

        statement = self._run(sql, params)
        return StatementResult(self._live_connection(), statement)

    def execute_update(self, sql: str, params: Mapping[str, Any] | None = None) -> int:
        """Run ``sql`` and return the affected row count."""

        self._run(sql, params)
        return self.row_count()

    def insert(self, table: str, fields: Mapping[str, Any]) -> str:
        """Insert one row and return the generated identifier."""

        sql = f"INSERT INTO {table} {build_insert_clause(fields)}"
        self._run(sql, fields)
        return self.last_insert_id()

    def insert_ignore(self, table: str, fields: Mapping[str, Any]) -> str:
        """Insert one row unless it conflicts with an existing key."""

        connection = self._live_connection()
        sql = connection.insert_ignore_sql(table, build_insert_clause(fields))
        self._run(sql, fields)
        return self.last_insert_id()

    def update(self, table: str, fields: Mapping[str, Any], where: Mapping[str, Any]) -> int:
        """Update ``fields`` on rows matching ``where``; returns the affected count.

        When a column appears in both mappings, or a SET column shares a name
        with a WHERE placeholder, the WHERE placeholders are prefixed (``w_``,
        then ``w2_``, ...) so neither value overwrites the other.
        """

        if not fields:
            raise UsageError(f"Nothing to update in '{table}': provide at least one field.")
        sql = f"UPDATE {table} SET {build_set(fields)}"
        params: dict[str, Any] = {}
        if where:
            prefix = _where_prefix(fields, where)
            sql += f" WHERE {build_where(where, prefix)}"
            params.update(expand_params(where, prefix))
        params.update(fields)
        self._run(sql, params)
        return self.row_count()

    def delete(self, table: str, where: Mapping[str, Any]) -> int:
        """Delete rows matching ``where``; an empty condition is rejected."""

        if not where:
            raise UsageError(f"Refusing to delete from '{table}' without a condition.")
        sql = f"DELETE FROM {table} WHERE {build_where(where)}"
        self._run(sql, where)
        return self.row_count()

    def fetch_all(self, sql: str, params: Mapping[str, Any] | None = None) -> list[Row]:
        statement = self._run(sql, params)
        return self._live_connection().fetch_all(statement)

    def fetch_row(self, sql: str, params: Mapping[str, Any] | None = None) -> Row | None:
        statement = self._run(sql, params)
        return self._live_connection().fetch_one(statement)

    # -- transactions ------------------------------------------------------

    def begin_transaction(self) -> bool:
        result = self._live_connection().begin_transaction()
        self._in_transaction = True
        return result

    def commit(self) -> bool:
        result = self._live_connection().commit()
        self._in_transaction = False
        return result

    def rollback(self) -> bool:
        result = self._live_connection().rollback()
        self._in_transaction = False
        return result

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run the block in a transaction; commit on success, roll back on error."""

        self.begin_transaction()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Release the driver connection; later calls raise UsageError."""

        if self._closed:
            return
        self._closed = True
        self._statement = None
        self._executed = False
        self._in_transaction = False
        LOG.info("Closing session '%s'", self._name)
        self._connection.close()

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- helpers -----------------------------------------------------------

    def _run(self, sql: str, params: Mapping[str, Any] | None) -> StatementHandle:
        statement = self.query(sql)
        if params:
            self.bind(params)
        self.execute()
        return statement

    def _live_connection(self) -> DriverConnection:
        if self._closed:
            raise UsageError(f"Session '{self._name}' is closed.")
        return self._connection

    def _require_statement(self, action: str) -> StatementHandle:
        if self._statement is None:
            raise UsageError(f"No prepared statement: call query() before trying to {action}.")
        return self._statement


def _where_prefix(fields: Mapping[str, Any], where: Mapping[str, Any]) -> str:
    """Pick a WHERE placeholder prefix whose names do not clash with ``fields``."""

    taken = set(fields)
    if not taken & set(where) and not taken & set(expand_params(where)):
        return ""
    prefix = WHERE_PREFIX
    attempt = 1
    while taken & set(expand_params(where, prefix)):
        attempt += 1
        prefix = f"w{attempt}_"
    return prefix


__all__ = ["Session", "StatementResult", "WHERE_PREFIX"]
