"""Bind parameter sets onto prepared statements."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from .clauses import is_list_value
from .errors import UsageError
from .models import ParamType, coerce_value, infer_param_type

if TYPE_CHECKING:
    from .connections import DriverConnection, StatementHandle


def expand_params(params: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten a parameter set, naming list elements ``{name}_{index}``."""

    expanded: dict[str, Any] = {}
    for name, value in params.items():
        key = f"{prefix}{name}"
        if is_list_value(value):
            for index, item in enumerate(value):
                expanded[f"{key}_{index}"] = item
        else:
            expanded[key] = value
    return expanded


def bind_params(
    connection: DriverConnection,
    statement: StatementHandle | None,
    params: Mapping[str, Any],
    *,
    param_type: ParamType | None = None,
    typed: bool = False,
) -> None:
    """Bind every entry of ``params`` onto ``statement``.

    Scalars are bound as strings unless ``typed`` asks for the type to be
    inferred from the value, or ``param_type`` forces one type for all values.
    """

    if statement is None:
        raise UsageError("No prepared statement: call query() before binding parameters.")
    for name, value in expand_params(params).items():
        if param_type is not None:
            kind = param_type
        elif typed:
            kind = infer_param_type(value)
        else:
            kind = ParamType.STR
        connection.bind_scalar(statement, name, coerce_value(value, kind))


__all__ = ["bind_params", "expand_params"]
