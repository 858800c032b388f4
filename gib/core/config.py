"""Configuration management for RPC access and run settings.

Loads configuration from a .env file, environment variables and an
optional YAML settings file. Command-line options override all of them.
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

ENV_PREFIX = "GIB_"


@dataclass(frozen=True)
class Settings:
    """Run settings shared by all commands."""

    # JSON-RPC endpoint of a Solana node (required by every command)
    rpc_url: Optional[str] = None

    # Custody/staking vault whose holdings are re-resolved to the depositor
    vault_address: Optional[str] = None

    # Sliding-window rate limit applied to every RPC call
    rate_limit_calls: int = 40
    rate_limit_period: float = 10.0

    request_timeout: float = 30.0
    max_retries: int = 3

    # Tokens processed at once; 1 keeps runs strictly sequential
    concurrency: int = 1

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from GIB_* environment variables."""
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is not None and raw != "":
                values[f.name] = raw
        return cls.from_mapping(values, origin="environment")

    @classmethod
    def from_mapping(cls, values: dict[str, Any], origin: str = "config") -> "Settings":
        """Build settings from a flat mapping, coercing numeric fields."""
        return cls().merge(values, origin=origin)

    @classmethod
    def load(
        cls,
        env_file: Optional[Path] = None,
        config_file: Optional[Path] = None,
    ) -> "Settings":
        """
        Load settings from .env, environment variables and a YAML file.

        Args:
            env_file: Optional path to .env file. If not provided,
                      looks for .env in the working directory.
            config_file: Optional YAML file whose keys override the
                         environment.

        Returns:
            Settings instance with loaded values
        """
        if env_file:
            load_dotenv(env_file)
        else:
            env_path = Path.cwd() / ".env"
            if env_path.exists():
                load_dotenv(env_path)

        settings = cls.from_env()

        if config_file:
            settings = settings.merge(_read_yaml(config_file), origin=str(config_file))

        return settings

    def merge(self, values: dict[str, Any], origin: str = "config") -> "Settings":
        """Return a copy with the given (non-None) values applied."""
        known = {f.name: f for f in fields(self)}
        updates: dict[str, Any] = {}

        for key, value in values.items():
            if key not in known:
                raise ConfigurationError(key, f"unknown setting in {origin}")
            if value is None:
                continue
            default = known[key].default
            try:
                if isinstance(default, int):
                    if isinstance(value, float) and not value.is_integer():
                        raise ValueError(f"{value} is not a whole number")
                    updates[key] = int(value)
                elif isinstance(default, float):
                    updates[key] = float(value)
                else:
                    updates[key] = str(value)
            except (TypeError, ValueError):
                raise ConfigurationError(key, f"invalid value {value!r} in {origin}")

        settings = replace(self, **updates)
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.rate_limit_calls < 1:
            raise ConfigurationError("rate_limit_calls", "must be at least 1")
        if self.rate_limit_period <= 0:
            raise ConfigurationError("rate_limit_period", "must be positive")
        if self.concurrency < 1:
            raise ConfigurationError("concurrency", "must be at least 1")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries", "must not be negative")

    def require_rpc_url(self) -> str:
        """Return the RPC URL or fail with a configuration error."""
        if not self.rpc_url:
            raise ConfigurationError(
                "rpc_url", f"an RPC endpoint is required (--rpc-url or {ENV_PREFIX}RPC_URL)"
            )
        return self.rpc_url


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(str(path), "config file not found")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(str(path), f"invalid YAML: {e}")
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "expected a mapping of settings")
    return data
