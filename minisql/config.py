"""Connection configuration loading helpers."""

from __future__ import annotations

import logging
from pathlib import Path

import tomllib

from pydantic import BaseModel, Field

from .models import ConnectionProfile

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "minisql" / "config.toml"


class ConnectionProfileConfig(BaseModel):
    """Connection profile configuration stored in config.toml.

    Required settings are checked when the registry opens the connection, so
    a profile with blanks still loads and fails with a ConfigurationError there.
    """

    host: str | None = None
    dbname: str | None = None
    user: str | None = None
    password: str | None = Field(default=None, repr=False)
    driver: str = "postgresql"
    port: int | None = None

    def to_profile(self) -> ConnectionProfile:
        """Convert to the runtime profile (fields must already be filled in)."""

        return ConnectionProfile(
            host=self.host or "",
            dbname=self.dbname or "",
            user=self.user or "",
            password=self.password or "",
            driver=self.driver,
            port=self.port,
        )


class DatabaseConfig(BaseModel):
    """Shape of the configuration file."""

    typed_binding: bool = False
    connections: dict[str, ConnectionProfileConfig] = Field(default_factory=dict)

    def profiles(self) -> dict[str, ConnectionProfile]:
        """Runtime profiles keyed by connection name."""

        return {name: entry.to_profile() for name, entry in self.connections.items()}

    def with_connection(self, name: str, profile: ConnectionProfileConfig) -> DatabaseConfig:
        """Return a copy with ``name`` added or replaced."""

        connections = dict(self.connections)
        connections[name] = profile
        return self.model_copy(update={"connections": connections})


def load_config(path: Path | None = None) -> DatabaseConfig:
    """Load configuration from disk; fall back to defaults if missing."""

    config_path = path or CONFIG_FILE
    try:
        data = _read_config_file(config_path)
    except FileNotFoundError:
        return DatabaseConfig()
    except (tomllib.TOMLDecodeError, OSError) as exc:
        LOG.warning("Ignoring unreadable config file %s: %s", config_path, exc)
        return DatabaseConfig()

    connections = {
        name: ConnectionProfileConfig(**entry)
        for name, entry in data.get("connections", {}).items()  # type: ignore[union-attr]
    }
    return DatabaseConfig(
        typed_binding=data.get("typed_binding", DatabaseConfig.model_fields["typed_binding"].default),
        connections=connections,
    )


def save_config(config: DatabaseConfig, path: Path | None = None) -> None:
    """Persist configuration to disk."""

    config_path = path or CONFIG_FILE
    config_path.parent.mkdir(parents=True, exist_ok=True)
    lines: list[str] = [f"typed_binding = {str(config.typed_binding).lower()}"]
    for name, profile in config.connections.items():
        lines.append("")
        lines.append(f"[connections.{_toml_string(name)}]")
        for key in ("host", "dbname", "user", "password", "driver"):
            value = getattr(profile, key)
            if value:
                lines.append(f"{key} = {_toml_string(value)}")
        if profile.port is not None:
            lines.append(f"port = {profile.port}")
    config_path.write_text("\n".join(lines) + "\n")


_TOML_ESCAPES = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _toml_string(value: str) -> str:
    """Quote ``value`` as a TOML basic string."""

    escaped = "".join(
        _TOML_ESCAPES.get(char, f"\\u{ord(char):04x}" if ord(char) < 0x20 or ord(char) == 0x7F else char)
        for char in value
    )
    return f'"{escaped}"'


def _read_config_file(path: Path) -> dict[str, object]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, object] = {}
    typed_binding = raw.get("typed_binding")
    if isinstance(typed_binding, bool):
        data["typed_binding"] = typed_binding
    connections = raw.get("connections")
    if isinstance(connections, dict):
        parsed_connections: dict[str, dict[str, object]] = {}
        for name, entry in connections.items():
            if not isinstance(entry, dict):
                continue
            parsed: dict[str, object] = {}
            for key in ("host", "dbname", "user", "password", "driver"):
                value = entry.get(key)
                if isinstance(value, str):
                    parsed[key] = value
            port = entry.get("port")
            if isinstance(port, int):
                parsed["port"] = port
            parsed_connections[str(name)] = parsed
        data["connections"] = parsed_connections
    return data


__all__ = [
    "CONFIG_FILE",
    "ConnectionProfileConfig",
    "DatabaseConfig",
    "load_config",
    "save_config",
]
