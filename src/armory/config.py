"""Client configuration and local directories."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .registry.client import DEFAULT_REGISTRY_URL


def armory_home() -> Path:
    """Return the client home directory (``~/.armory`` by default)."""
    override = os.environ.get("ARMORY_CLIENT_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".armory"


def armory_bin() -> Path:
    return armory_home() / "bin"


def armory_cache() -> Path:
    return armory_home() / "cache"


class ConfigError(Exception):
    """Raised when the client config file cannot be read."""


@dataclass
class ClientConfig:
    """Where the registry lives and how to authenticate against it."""
    registry_url: str = DEFAULT_REGISTRY_URL
    password: Optional[str] = None

    @staticmethod
    def path() -> Path:
        return armory_home() / "config.yaml"

    @classmethod
    def from_dict(cls, data: dict) -> "ClientConfig":
        registry = data.get("registry", {}) or {}
        return cls(
            registry_url=registry.get("url", DEFAULT_REGISTRY_URL),
            password=registry.get("password"),
        )

    def to_dict(self) -> dict:
        registry = {"url": self.registry_url}
        if self.password is not None:
            registry["password"] = self.password
        return {"registry": registry}

    @classmethod
    def load(cls, env: Optional[dict[str, str]] = None) -> "ClientConfig":
        """Load the config file, then apply environment overrides."""
        src = os.environ if env is None else env
        path = cls.path()

        config = cls()
        if path.exists():
            try:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"failed to parse {path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"failed to parse {path}: expected a mapping")
            config = cls.from_dict(data)

        if src.get("ARMORY_REGISTRY_URL"):
            config.registry_url = src["ARMORY_REGISTRY_URL"]
        if src.get("ARMORY_REGISTRY_PASSWORD") is not None:
            config.password = src["ARMORY_REGISTRY_PASSWORD"]
        return config

    def save(self) -> Path:
        path = self.path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        path.chmod(0o600)
        return path
