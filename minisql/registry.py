"""Directory of named sessions with first-registered default lookup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from pydantic import BaseModel

from .connections import Driver, default_drivers
from .errors import ConfigurationError, SessionNotFoundError
from .models import REQUIRED_PROFILE_FIELDS, ConnectionProfile
from .session import Session

if TYPE_CHECKING:
    from .config import DatabaseConfig

LOG = logging.getLogger(__name__)

ProfileInput = ConnectionProfile | BaseModel | Mapping[str, Any]


class ConnectionRegistry:
    """Owns named sessions for the lifetime of the application.

    Registration is expected to happen once at start-up; ``register_all`` is
    not synchronized, so concurrent registration of the same name needs
    external locking. Lookups are safe once registration has finished.
    """

    def __init__(
        self,
        *,
        drivers: Mapping[str, Driver] | None = None,
        typed_binding: bool = False,
    ) -> None:
        self._drivers: dict[str, Driver] = dict(drivers) if drivers is not None else default_drivers()
        self._typed_binding = typed_binding
        self._sessions: dict[str, Session] = {}
        self._order: list[str] = []

    @classmethod
    def from_config(
        cls,
        config: DatabaseConfig,
        *,
        drivers: Mapping[str, Driver] | None = None,
    ) -> ConnectionRegistry:
        """Build a registry and open every connection listed in ``config``."""

        registry = cls(drivers=drivers, typed_binding=config.typed_binding)
        registry.register_all(config.connections)
        return registry

    @property
    def names(self) -> tuple[str, ...]:
        """Registered names in registration order."""

        return tuple(self._order)

    @property
    def default_name(self) -> str | None:
        """Name returned by ``get()`` when several sessions exist."""

        return self._order[0] if self._order else None

    @property
    def sessions(self) -> dict[str, Session]:
        """Copy of every registered session keyed by name."""

        return {name: self._sessions[name] for name in self._order}

    def register_all(self, profiles: Mapping[str, ProfileInput]) -> dict[str, Session]:
        """Open sessions for names not registered yet and return all sessions.

        Names that are already registered are left untouched.
        """

        for name, raw in profiles.items():
            if name in self._sessions:
                continue
            if not isinstance(name, str) or not name:
                raise ConfigurationError("Connection names must be non-empty strings.")
            profile = _coerce_profile(name, raw)
            driver = self._driver_for(name, profile)
            session = Session(profile, driver, name=name, typed_binding=self._typed_binding)
            self._sessions[name] = session
            self._order.append(name)
            LOG.info("Registered connection '%s' using the %s driver", name, profile.driver)
        return self.sessions

    def get(self, name: str | None = None) -> Session:
        """Return the named session, or the default one when ``name`` is omitted."""

        if name:
            try:
                return self._sessions[name]
            except KeyError:
                raise SessionNotFoundError(f"Connection '{name}' not found.") from None
        if not self._order:
            raise SessionNotFoundError("No connection has been registered.")
        return self._sessions[self._order[0]]

    def release(self, name: str) -> None:
        """Close and forget one session; the default moves to the next oldest."""

        session = self.get(name)
        self._sessions.pop(name)
        self._order.remove(name)
        session.close()

    def close_all(self) -> None:
        """Close every session and empty the registry."""

        for name in tuple(self._order):
            self.release(name)

    def __contains__(self, name: object) -> bool:
        return name in self._sessions

    def __len__(self) -> int:
        return len(self._order)

    def __enter__(self) -> ConnectionRegistry:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close_all()

    def _driver_for(self, name: str, profile: ConnectionProfile) -> Driver:
        try:
            return self._drivers[profile.driver]
        except KeyError:
            known = ", ".join(sorted(self._drivers)) or "none"
            raise ConfigurationError(
                f"Connection '{name}' uses unknown driver '{profile.driver}' (known: {known})."
            ) from None


def _coerce_profile(name: str, raw: ProfileInput) -> ConnectionProfile:
    if isinstance(raw, ConnectionProfile):
        values: Mapping[str, Any] = {
            "host": raw.host,
            "dbname": raw.dbname,
            "user": raw.user,
            "password": raw.password,
            "driver": raw.driver,
            "port": raw.port,
        }
    elif isinstance(raw, BaseModel):
        values = raw.model_dump()
    elif isinstance(raw, Mapping):
        values = raw
    else:
        raise ConfigurationError(f"Connection '{name}' must be a mapping of connection settings.")
    missing = _missing_fields(values, REQUIRED_PROFILE_FIELDS)
    if missing:
        raise ConfigurationError(
            f"Invalid connection parameters for '{name}': missing {', '.join(missing)}."
        )
    port = values.get("port")
    if port is not None and not isinstance(port, int):
        raise ConfigurationError(f"Connection '{name}' has a non-integer port: {port!r}.")
    return ConnectionProfile(
        host=str(values["host"]),
        dbname=str(values["dbname"]),
        user=str(values["user"]),
        password=str(values["password"]),
        driver=str(values.get("driver") or "postgresql"),
        port=port,
    )


def _missing_fields(values: Mapping[str, Any], required: Iterable[str]) -> list[str]:
    return [key for key in required if not values.get(key)]


__all__ = ["ConnectionRegistry", "ProfileInput"]
