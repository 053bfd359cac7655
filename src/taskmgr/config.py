"""Configuration helpers for the task manager service."""

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Mapping, MutableMapping, Optional

import yaml

CONFIG_ENV = "TASKMGR_CONFIG"
STORAGE_BACKENDS = ("http", "postgres", "none")


class ConfigError(RuntimeError):
    """Raised when configuration files are invalid."""


@dataclass
class ServerSpec:
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ServerSpec":
        if not data:
            return cls()
        try:
            port = int(data.get("port", 8000))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"server.port must be an integer, got {data.get('port')!r}") from exc
        return cls(host=str(data.get("host", "127.0.0.1")), port=port)


@dataclass
class StorageSpec:
    """Where task mutations are mirrored to."""

    backend: str = "http"
    url: str = "http://127.0.0.1:8001"
    db_url: Optional[str] = None
    timeout: float = 5.0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "StorageSpec":
        if not data:
            return cls()
        spec = cls(
            backend=str(data.get("backend", "http")).strip().lower(),
            url=str(data.get("url") or "http://127.0.0.1:8001"),
            db_url=data.get("db_url"),
            timeout=_positive_float("storage.timeout", data.get("timeout", 5.0)),
        )
        spec.validate()
        return spec

    def validate(self) -> None:
        if self.backend not in STORAGE_BACKENDS:
            raise ConfigError(
                f"storage.backend must be one of {', '.join(STORAGE_BACKENDS)}, got {self.backend!r}"
            )
        if self.backend == "postgres" and not self.db_url:
            raise ConfigError("storage.db_url is required for the postgres backend")


@dataclass
class SeedSpec:
    """The welcome task inserted on startup."""

    enabled: bool = True
    title: str = "Welcome Task"
    description: str = "This is your first task!"

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "SeedSpec":
        if not data:
            return cls()
        return cls(
            enabled=bool(data.get("enabled", True)),
            title=str(data.get("title", "Welcome Task")),
            description=str(data.get("description", "This is your first task!")),
        )


@dataclass
class LoggingSpec:
    level: str = "INFO"
    file: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "LoggingSpec":
        if not data:
            return cls()
        return cls(level=str(data.get("level", "INFO")).upper(), file=data.get("file"))


@dataclass
class Settings:
    """Representation of the YAML configuration."""

    name: str = "Task Manager"
    server: ServerSpec = field(default_factory=ServerSpec)
    storage: StorageSpec = field(default_factory=StorageSpec)
    seed: SeedSpec = field(default_factory=SeedSpec)
    logging: LoggingSpec = field(default_factory=LoggingSpec)
    file_path: Optional[pathlib.Path] = None

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "Settings":
        p = pathlib.Path(path)
        if not p.exists():
            raise ConfigError(f"Config not found: {p}")
        data = yaml.safe_load(p.read_text()) or {}
        if not isinstance(data, MutableMapping):
            raise ConfigError("Configuration root must be a mapping")
        return cls.from_mapping(data, p)

    @classmethod
    def from_yaml(cls, content: str) -> "Settings":
        data = yaml.safe_load(content) or {}
        if not isinstance(data, MutableMapping):
            raise ConfigError("Configuration root must be a mapping")
        return cls.from_mapping(data)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], path: Optional[pathlib.Path] = None) -> "Settings":
        return cls(
            name=str(data.get("name", "Task Manager")),
            server=ServerSpec.from_mapping(data.get("server")),
            storage=StorageSpec.from_mapping(data.get("storage")),
            seed=SeedSpec.from_mapping(data.get("seed")),
            logging=LoggingSpec.from_mapping(data.get("logging")),
            file_path=path,
        )

    @classmethod
    def load(cls, path: str | pathlib.Path | None = None) -> "Settings":
        """Load from ``path`` (or ``$TASKMGR_CONFIG``) and apply environment overrides."""
        source = path or os.getenv(CONFIG_ENV, "").strip()
        settings = cls.from_file(source) if source else cls()
        settings.apply_env()
        return settings

    def apply_env(self, environ: Optional[Mapping[str, str]] = None) -> None:
        env = os.environ if environ is None else environ
        backend = env.get("TASKMGR_STORAGE_BACKEND", "").strip()
        if backend:
            self.storage.backend = backend.lower()
        url = env.get("TASKMGR_STORAGE_URL", "").strip()
        if url:
            self.storage.url = url
        db_url = env.get("TASKMGR_DB_URL", "").strip()
        if db_url:
            self.storage.db_url = db_url
        level = env.get("TASKMGR_LOG_LEVEL", "").strip()
        if level:
            self.logging.level = level.upper()
        self.storage.validate()

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "server": {"host": self.server.host, "port": self.server.port},
            "storage": {
                "backend": self.storage.backend,
                "url": self.storage.url,
                "db_url": self.storage.db_url,
                "timeout": self.storage.timeout,
            },
            "seed": {
                "enabled": self.seed.enabled,
                "title": self.seed.title,
                "description": self.seed.description,
            },
            "logging": {"level": self.logging.level, "file": self.logging.file},
        }


def _positive_float(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"{name} must be positive")
    return number
