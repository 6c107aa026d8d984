"""Configuration loading, validation and locking."""
from .schema import BrewSpec, CommandSpec, CutlerConfig, RemoteSpec
from .loader import (
    ConfigError,
    ConfigLockedError,
    ConfigNotFoundError,
    config_candidates,
    default_config_text,
    ensure_unlocked,
    get_config_path,
    load_config,
    parse_config,
    set_lock,
    write_default_config,
)
from .remote import fetch_remote_config

__all__ = [
    "BrewSpec",
    "CommandSpec",
    "CutlerConfig",
    "RemoteSpec",
    "ConfigError",
    "ConfigLockedError",
    "ConfigNotFoundError",
    "config_candidates",
    "default_config_text",
    "ensure_unlocked",
    "get_config_path",
    "load_config",
    "parse_config",
    "set_lock",
    "write_default_config",
    "fetch_remote_config",
]
