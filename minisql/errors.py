"""Exception hierarchy shared by the registry, sessions and drivers."""

from __future__ import annotations


class MinisqlError(RuntimeError):
    """Base class for every error raised by minisql."""


class ConfigurationError(MinisqlError, ValueError):
    """Raised when a connection profile is missing required settings."""


class SessionNotFoundError(MinisqlError, LookupError):
    """Raised when a named (or default) session is not registered."""


class DriverError(MinisqlError):
    """Raised when the underlying driver fails to connect, prepare or execute.

    The native driver exception is kept as ``__cause__``.
    """

    @property
    def original(self) -> BaseException | None:
        return self.__cause__


class UsageError(MinisqlError):
    """Raised when operations run out of order or receive invalid input."""


class UnsupportedOperationError(UsageError):
    """Raised when the active SQL dialect lacks the requested feature."""


__all__ = [
    "ConfigurationError",
    "DriverError",
    "MinisqlError",
    "SessionNotFoundError",
    "UnsupportedOperationError",
    "UsageError",
]
