"""
Configuration system for entityledger.

Loads YAML configuration files and provides typed access to settings.
Uses Pydantic v2 for validation and immutable config objects.

Configuration Hierarchy (highest priority first):
1. CLI arguments (passed to load_config)
2. Environment variables (ENTITYLEDGER_*)
3. YAML configuration file
4. Pydantic field defaults
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from entityledger.core.ledger import LedgerStore, MemoryLedger, SqliteLedger
from entityledger.core.observability import InvocationLogger


class LedgerConfig(BaseModel):
    """Which ledger backend to talk to."""

    model_config = ConfigDict(frozen=True)

    backend: Literal["memory", "sqlite"] = Field(default="sqlite", description="Ledger backend")
    path: Path = Field(default=Path(".entityledger/ledger.db"), description="SQLite ledger file")
    rich_query: bool = Field(default=True, description="Whether the backend supports rich queries")


class LoggingConfig(BaseModel):
    """Invocation log settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Record invocations to the log database")
    path: Path = Field(default=Path(".entityledger/logs.db"), description="SQLite log file")


class EntityLedgerConfig(BaseModel):
    """Central configuration object for an entityledger deployment."""

    model_config = ConfigDict(frozen=True)

    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict, base_path: Optional[Path] = None) -> "EntityLedgerConfig":
        """Create from dictionary, resolving relative paths against base_path."""
        base_path = base_path or Path(".")
        ledger = dict(data.get("ledger") or {})
        logging = dict(data.get("logging") or {})

        for section in (ledger, logging):
            if section.get("path") is not None:
                section["path"] = base_path / section["path"]

        return cls.model_validate({"ledger": ledger, "logging": logging})


def build_ledger(config: EntityLedgerConfig) -> LedgerStore:
    """Construct the configured ledger backend."""
    if config.ledger.backend == "memory":
        return MemoryLedger(rich_query=config.ledger.rich_query)
    return SqliteLedger(config.ledger.path, rich_query=config.ledger.rich_query)


def build_logger(config: EntityLedgerConfig) -> Optional[InvocationLogger]:
    """Construct the invocation logger, or None when logging is disabled."""
    if not config.logging.enabled:
        return None
    return InvocationLogger(config.logging.path)


def load_config(
    path: Optional[Path] = None,
    env_prefix: str = "ENTITYLEDGER_",
    cli_overrides: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
) -> EntityLedgerConfig:
    """Load configuration with hierarchy: defaults → YAML → env vars → CLI args.

    Args:
        path: Optional explicit path to YAML config file
        env_prefix: Prefix for environment variables (default: "ENTITYLEDGER_")
        cli_overrides: Optional dictionary of CLI argument overrides
        use_env: Whether to load environment variables (default: True)

    Returns:
        Merged EntityLedgerConfig

    Raises:
        pydantic.ValidationError: If the merged settings are invalid

    Examples:
        # Environment variable: ENTITYLEDGER_LEDGER_BACKEND=memory
        config = load_config()  # config.ledger.backend == "memory"
    """
    yaml_path = _find_config_file(path)
    base_path = yaml_path.parent if yaml_path else Path(".")

    if yaml_path:
        with open(yaml_path) as f:
            config_dict = yaml.safe_load(f) or {}
    else:
        config_dict = {}

    if use_env:
        _deep_merge(config_dict, _extract_env_config(env_prefix))

    if cli_overrides:
        _deep_merge(config_dict, cli_overrides)

    if not config_dict:
        return EntityLedgerConfig()

    return EntityLedgerConfig.from_dict(config_dict, base_path=base_path)


def _find_config_file(path: Optional[Path] = None) -> Optional[Path]:
    """Find configuration file.

    Searches in this order:
    1. Provided path
    2. ./entityledger.yaml
    3. ./config.yaml
    """
    if path and path.exists():
        return path

    for filename in ["entityledger.yaml", "config.yaml"]:
        config_path = Path(filename)
        if config_path.exists():
            return config_path

    return None


def _convert_env_bool(value: str) -> Union[bool, str]:
    """Map the usual true/false spellings to bool.

    Anything else is returned unchanged so validation reports it.
    """
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "1", "on"):
        return True
    if lowered in ("false", "no", "0", "off"):
        return False
    return value


# Environment suffix -> (section, field, converter)
_ENV_KEYS: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "LEDGER_BACKEND": ("ledger", "backend", str.strip),
    "LEDGER_PATH": ("ledger", "path", str),
    "LEDGER_RICH_QUERY": ("ledger", "rich_query", _convert_env_bool),
    "LOGGING_ENABLED": ("logging", "enabled", _convert_env_bool),
    "LOGGING_PATH": ("logging", "path", str),
}


def _extract_env_config(prefix: str = "ENTITYLEDGER_") -> Dict[str, Any]:
    """Extract configuration from environment variables.

    Only the documented keys are read; other ENTITYLEDGER_* variables are ignored.

    - ENTITYLEDGER_LEDGER_BACKEND=memory → {"ledger": {"backend": "memory"}}
    - ENTITYLEDGER_LEDGER_PATH=/var/ledger.db → {"ledger": {"path": "/var/ledger.db"}}
    - ENTITYLEDGER_LEDGER_RICH_QUERY=false → {"ledger": {"rich_query": False}}
    - ENTITYLEDGER_LOGGING_ENABLED=no → {"logging": {"enabled": False}}
    - ENTITYLEDGER_LOGGING_PATH=logs.db → {"logging": {"path": "logs.db"}}
    """
    config: Dict[str, Any] = {}

    for suffix, (section, field_name, convert) in _ENV_KEYS.items():
        value = os.environ.get(prefix + suffix)
        if value is None:
            continue
        config.setdefault(section, {})[field_name] = convert(value)

    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base dictionary (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


__all__ = [
    "LedgerConfig",
    "LoggingConfig",
    "EntityLedgerConfig",
    "build_ledger",
    "build_logger",
    "load_config",
]
