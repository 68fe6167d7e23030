"""Tests for the parameter binder."""

from __future__ import annotations

import pytest

from minisql.binding import bind_params, expand_params
from minisql.connections import BufferedStatement
from minisql.errors import UsageError
from minisql.models import ParamType, coerce_value, infer_param_type


class _RecordingConnection:
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    def bind_scalar(self, statement: BufferedStatement, name: str, value: object) -> None:
        self.calls.append((name, value))
        statement.params[name] = value


def test_list_binds_one_value_per_element_in_order() -> None:
    connection = _RecordingConnection()
    statement = BufferedStatement(sql="SELECT 1")

    bind_params(connection, statement, {"k": ["a", "b", "c"]})  # type: ignore[arg-type]

    assert connection.calls == [("k_0", "a"), ("k_1", "b"), ("k_2", "c")]


def test_scalars_bind_as_strings_by_default() -> None:
    connection = _RecordingConnection()
    statement = BufferedStatement(sql="SELECT 1")

    bind_params(connection, statement, {"id": 5, "flag": True, "missing": None})  # type: ignore[arg-type]

    assert statement.params == {"id": "5", "flag": "1", "missing": None}


def test_typed_binding_keeps_native_values() -> None:
    connection = _RecordingConnection()
    statement = BufferedStatement(sql="SELECT 1")

    bind_params(connection, statement, {"id": 5, "ids": [1, 2], "flag": False}, typed=True)  # type: ignore[arg-type]

    assert statement.params == {"id": 5, "ids_0": 1, "ids_1": 2, "flag": False}


def test_explicit_param_type_overrides_inference() -> None:
    connection = _RecordingConnection()
    statement = BufferedStatement(sql="SELECT 1")

    bind_params(connection, statement, {"id": "7"}, param_type=ParamType.INT, typed=True)  # type: ignore[arg-type]

    assert statement.params == {"id": 7}


def test_binding_without_statement_fails_fast() -> None:
    with pytest.raises(UsageError):
        bind_params(_RecordingConnection(), None, {"id": 1})  # type: ignore[arg-type]


def test_expand_params_applies_prefix() -> None:
    assert expand_params({"id": [3, 4], "name": "x"}, prefix="w_") == {
        "w_id_0": 3,
        "w_id_1": 4,
        "w_name": "x",
    }


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, ParamType.NULL),
        (True, ParamType.BOOL),
        (3, ParamType.INT),
        ("x", ParamType.STR),
        (2.5, ParamType.NATIVE),
    ],
)
def test_infer_param_type(value: object, expected: ParamType) -> None:
    assert infer_param_type(value) is expected


def test_coerce_value_string_leaves_bytes_alone() -> None:
    assert coerce_value(b"\x00\x01", ParamType.STR) == b"\x00\x01"
    assert coerce_value(2.5, ParamType.STR) == "2.5"
