"""Shared dataclasses and value helpers used across connection/session modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

Row = Mapping[str, Any]

REQUIRED_PROFILE_FIELDS: tuple[str, ...] = ("host", "dbname", "user", "password")


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Runtime representation of a connection profile."""

    host: str
    dbname: str
    user: str
    password: str = field(repr=False)
    driver: str = "postgresql"
    port: int | None = None


class ParamType(Enum):
    """How a scalar value is handed to the driver."""

    STR = "str"
    INT = "int"
    BOOL = "bool"
    NULL = "null"
    NATIVE = "native"


def infer_param_type(value: object) -> ParamType:
    """Pick a parameter type from the value's native representation."""

    if value is None:
        return ParamType.NULL
    # bool first: it is an int subclass
    if isinstance(value, bool):
        return ParamType.BOOL
    if isinstance(value, int):
        return ParamType.INT
    if isinstance(value, str):
        return ParamType.STR
    return ParamType.NATIVE


def coerce_value(value: object, param_type: ParamType) -> object:
    """Convert ``value`` to the representation ``param_type`` asks for."""

    if value is None or param_type is ParamType.NULL:
        return None
    if param_type is ParamType.STR:
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (bytes, bytearray, memoryview)):
            return value
        return str(value)
    if param_type is ParamType.INT:
        return int(value)  # type: ignore[call-overload]
    if param_type is ParamType.BOOL:
        return bool(value)
    return value


__all__ = [
    "ConnectionProfile",
    "ParamType",
    "REQUIRED_PROFILE_FIELDS",
    "Row",
    "coerce_value",
    "infer_param_type",
]
