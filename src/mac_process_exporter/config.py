"""Configuration system for mac-process-exporter."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from mac_process_exporter.processes import default_supervisor_name


@dataclass
class ServerConfig:
    """HTTP listener configuration."""

    host: str = "localhost"  # Loopback only
    port: int = 19002
    port_env: str = "PORT"  # Environment variable that overrides port


@dataclass
class CollectionConfig:
    """Collection cycle configuration."""

    timeout_seconds: float = 10.0  # Deadline for one full cycle
    max_workers: int = 8  # Worker threads per cycle
    batch_size: int = 64  # Processes handled per worker task
    supervisor_name: str = field(default_factory=default_supervisor_name)
    log_groups: bool = False  # Debug-log every group's totals on each cycle


@dataclass
class SystemConfig:
    """Daemon housekeeping configuration."""

    heartbeat_seconds: float = 300.0  # Seconds between heartbeat log lines
    # Log file rotation
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    server: ServerConfig = field(default_factory=ServerConfig)
    collection: CollectionConfig = field(default_factory=CollectionConfig)
    system: SystemConfig = field(default_factory=SystemConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "mac-process-exporter"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "mac-process-exporter"

    @property
    def log_path(self) -> Path:
        """Exporter log path (JSON Lines)."""
        return self.state_dir / "exporter.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("server", "collection", "system"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None, environ: Mapping[str, str] | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        The port environment variable (``PORT`` by default) is applied last and
        wins over the file.

        Raises:
            ValueError: If the file cannot be parsed or holds invalid values.
        """
        defaults = cls()
        path = path or defaults.config_path
        environ = os.environ if environ is None else environ

        data: Mapping = {}
        if path.exists():
            try:
                with open(path) as f:
                    data = tomlkit.load(f)
            except tomlkit.exceptions.TOMLKitError as e:
                raise ValueError(f"Failed to parse config file {path}: {e}") from e

        config = cls(
            server=_load_server_config(data.get("server", {})),
            collection=_load_collection_config(data.get("collection", {})),
            system=_load_system_config(data.get("system", {})),
        )
        config.server.port = _port_from_env(config.server, environ)
        return config


def _require_int(name: str, value: object) -> int:
    # bool is an int subclass; TOML true/false is never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return int(value)


def _require_number(name: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    return float(value)


def _require_str(name: str, value: object) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {value!r}")
    return str(value)


def _require_bool(name: str, value: object) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{name} must be true or false, got {value!r}")
    return bool(value)


def _validate_port(port: object) -> int:
    port = _require_int("port", port)
    if not 1 <= port <= 65535:
        raise ValueError(f"port must be between 1 and 65535, got {port}")
    return port


def _port_from_env(server: ServerConfig, environ: Mapping[str, str]) -> int:
    """Return the port from the environment if set, else the configured one."""
    raw = environ.get(server.port_env, "")
    if not raw:
        return server.port
    try:
        port = int(raw)
    except ValueError as e:
        raise ValueError(f"{server.port_env} must be an integer, got {raw!r}") from e
    return _validate_port(port)


def _load_server_config(data: Mapping) -> ServerConfig:
    """Load server config from TOML data, using dataclass defaults for missing fields."""
    d = ServerConfig()
    return ServerConfig(
        host=_require_str("host", data.get("host", d.host)),
        port=_validate_port(data.get("port", d.port)),
        port_env=_require_str("port_env", data.get("port_env", d.port_env)),
    )


def _load_collection_config(data: Mapping) -> CollectionConfig:
    """Load collection config from TOML data."""
    d = CollectionConfig()

    timeout_seconds = _require_number(
        "timeout_seconds", data.get("timeout_seconds", d.timeout_seconds)
    )
    max_workers = _require_int("max_workers", data.get("max_workers", d.max_workers))
    batch_size = _require_int("batch_size", data.get("batch_size", d.batch_size))

    if timeout_seconds <= 0:
        raise ValueError(f"timeout_seconds must be > 0, got {timeout_seconds}")
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    return CollectionConfig(
        timeout_seconds=timeout_seconds,
        max_workers=max_workers,
        batch_size=batch_size,
        supervisor_name=_require_str(
            "supervisor_name", data.get("supervisor_name", d.supervisor_name)
        ),
        log_groups=_require_bool("log_groups", data.get("log_groups", d.log_groups)),
    )


def _load_system_config(data: Mapping) -> SystemConfig:
    """Load system config from TOML data."""
    d = SystemConfig()

    heartbeat_seconds = _require_number(
        "heartbeat_seconds", data.get("heartbeat_seconds", d.heartbeat_seconds)
    )
    log_max_bytes = _require_int("log_max_bytes", data.get("log_max_bytes", d.log_max_bytes))
    log_backup_count = _require_int(
        "log_backup_count", data.get("log_backup_count", d.log_backup_count)
    )

    if heartbeat_seconds <= 0:
        raise ValueError(f"heartbeat_seconds must be > 0, got {heartbeat_seconds}")
    if log_max_bytes < 0:
        raise ValueError(f"log_max_bytes must be >= 0, got {log_max_bytes}")
    if log_backup_count < 0:
        raise ValueError(f"log_backup_count must be >= 0, got {log_backup_count}")

    return SystemConfig(
        heartbeat_seconds=heartbeat_seconds,
        log_max_bytes=log_max_bytes,
        log_backup_count=log_backup_count,
    )
