"""Shared fakes for session and registry tests."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from minisql.connections import BufferedStatement
from minisql.errors import DriverError
from minisql.models import ConnectionProfile


class FakeConnection:
    """Records every driver call instead of talking to a database."""

    requires_typed_binding = False

    def __init__(self, profile: ConnectionProfile) -> None:
        self.profile = profile
        self.prepared: list[str] = []
        self.executed: list[tuple[str, dict[str, object]]] = []
        self.transactions: list[str] = []
        self.rows: list[dict[str, object]] = []
        self.rowcount = 1
        self.next_id = "42"
        self.fail_on_execute: str | None = None
        self.closed = False

    def prepare(self, sql: str) -> BufferedStatement:
        self.prepared.append(sql)
        return BufferedStatement(sql=sql)

    def bind_scalar(self, statement: BufferedStatement, name: str, value: object) -> None:
        statement.params[name] = value

    def execute(self, statement: BufferedStatement) -> bool:
        if self.fail_on_execute:
            raise DriverError(self.fail_on_execute)
        self.executed.append((statement.sql, dict(statement.params)))
        statement.load(list(self.rows), self.rowcount)
        return True

    def row_count(self, statement: BufferedStatement) -> int:
        return statement.rowcount

    def fetch_all(self, statement: BufferedStatement) -> list[dict[str, object]]:
        return statement.remaining_rows()

    def fetch_one(self, statement: BufferedStatement) -> dict[str, object] | None:
        return statement.next_row()

    def last_insert_id(self) -> str:
        return self.next_id

    def insert_ignore_sql(self, table: str, clause: str) -> str:
        return f"INSERT IGNORE INTO {table} {clause}"

    def begin_transaction(self) -> bool:
        self.transactions.append("begin")
        return True

    def commit(self) -> bool:
        self.transactions.append("commit")
        return True

    def rollback(self) -> bool:
        self.transactions.append("rollback")
        return True

    def close(self) -> None:
        self.closed = True

    @property
    def last_sql(self) -> str:
        return self.executed[-1][0]

    @property
    def last_params(self) -> dict[str, object]:
        return self.executed[-1][1]


@dataclass
class FakeDriver:
    """Driver handing out FakeConnection objects; can be told to refuse."""

    fail_with: str | None = None
    connection_class: type[FakeConnection] = FakeConnection
    connections: list[FakeConnection] = field(default_factory=list)

    def connect(self, profile: ConnectionProfile) -> FakeConnection:
        if self.fail_with:
            raise DriverError(self.fail_with)
        connection = self.connection_class(profile)
        self.connections.append(connection)
        return connection


@pytest.fixture
def profile() -> ConnectionProfile:
    return ConnectionProfile(host="localhost", dbname="app", user="app", password="secret", driver="fake")


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def sqlite_profile() -> ConnectionProfile:
    return ConnectionProfile(host="localhost", dbname=":memory:", user="app", password="secret", driver="sqlite")
