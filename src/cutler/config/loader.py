"""Locate, parse and lock/unlock the cutler configuration file.

Search order for the config file (first existing wins):
    $CUTLER_CONFIG
    ~/.config/cutler/config.toml
    ~/.config/cutler.toml
    $XDG_CONFIG_HOME/cutler/config.toml
    $XDG_CONFIG_HOME/cutler.toml

When none exists, the first candidate is used as the default location.
"""
import logging
import os
import tomllib
from importlib import resources
from pathlib import Path
from typing import Optional

import tomlkit
from pydantic import ValidationError

from .schema import CutlerConfig

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Error loading or interpreting the configuration."""
    pass


class ConfigNotFoundError(ConfigError):
    """No configuration file exists at the resolved path."""
    pass


class ConfigLockedError(ConfigError):
    """The configuration is locked against mutating commands."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "The config file is locked. Run `cutler config unlock` to unlock."
        )


def config_candidates() -> list[Path]:
    """Candidate config locations in priority order."""
    candidates = []

    explicit = os.environ.get("CUTLER_CONFIG")
    if explicit:
        candidates.append(Path(explicit).expanduser())

    home = Path.home()
    candidates.append(home / ".config" / "cutler" / "config.toml")
    candidates.append(home / ".config" / "cutler.toml")

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        candidates.append(Path(xdg) / "cutler" / "config.toml")
        candidates.append(Path(xdg) / "cutler.toml")

    return candidates


def get_config_path() -> Path:
    """Resolve the config path to use for this invocation."""
    candidates = config_candidates()
    for path in candidates:
        if path.exists():
            return path
    return candidates[0]


def parse_config(text: str, path: Optional[Path] = None) -> CutlerConfig:
    """Parse TOML text into a CutlerConfig.

    Raises:
        ConfigError: If the TOML is malformed or fails validation
    """
    where = f" at {path}" if path else ""
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(
            f"Failed to parse TOML{where}: {e}. Please check for syntax errors."
        ) from e

    try:
        config = CutlerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration{where}:\n{e}") from e

    config.source_path = path
    return config


def ensure_unlocked(config: CutlerConfig) -> None:
    """Refuse to continue when the config carries ``lock = true``."""
    if config.lock:
        raise ConfigLockedError()


def load_config(
    path: Optional[Path] = None,
    lock_check: bool = True,
) -> CutlerConfig:
    """Read and parse the configuration file.

    Args:
        path: Explicit path (default: resolved via get_config_path)
        lock_check: Raise ConfigLockedError if the config is locked

    Raises:
        ConfigNotFoundError: If the file does not exist
        ConfigLockedError: If locked and lock_check is set
        ConfigError: If the file cannot be parsed
    """
    path = Path(path) if path else get_config_path()

    if not path.exists():
        raise ConfigNotFoundError(
            f"No config file found at {path}.\n"
            "Run `cutler init` to create one from the bundled template."
        )

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {path}: {e}") from e

    config = parse_config(text, path)
    logger.debug(f"Loaded config from {path}")

    if lock_check:
        ensure_unlocked(config)

    return config


def set_lock(path: Path, locked: bool, dry_run: bool = False) -> None:
    """Lock or unlock the config file in place.

    The document is edited with tomlkit so comments and ordering survive.

    Raises:
        ConfigNotFoundError: If the file does not exist
        ConfigError: If the file is already in the requested state
    """
    if not path.exists():
        verb = "lock" if locked else "unlock"
        raise ConfigNotFoundError(
            f"Cannot find a configuration to {verb} in the first place."
        )

    document = tomlkit.parse(path.read_text(encoding="utf-8"))
    currently_locked = bool(document.get("lock", False))

    if locked and currently_locked:
        raise ConfigError("Already locked.")
    if not locked and not currently_locked:
        raise ConfigError("Already unlocked.")

    if dry_run:
        logger.info(f"Dry-run: Would {'lock' if locked else 'unlock'} config file {path}")
        return

    if locked:
        document["lock"] = True
    else:
        del document["lock"]

    path.write_text(tomlkit.dumps(document), encoding="utf-8")
    logger.info(f"{'Locked' if locked else 'Unlocked'} config file {path}")


def default_config_text() -> str:
    """The annotated template shipped with the package."""
    return resources.files("cutler").joinpath("templates/complete.toml").read_text(
        encoding="utf-8"
    )


def write_default_config(path: Path, dry_run: bool = False) -> None:
    """Write the bundled template to ``path``, creating parent directories."""
    if dry_run:
        logger.info(f"Dry-run: Would write the config template to {path}")
        return

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_config_text(), encoding="utf-8")
    logger.info(f"Config created at {path}. Review and customize it before applying.")
