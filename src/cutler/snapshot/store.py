"""Snapshot of preference changes made by the last apply.

The snapshot is the only durable record of what cutler changed. Each
entry remembers the value a key had before cutler first touched it, so
unapply can restore it (or delete the key if it did not exist).

File format (JSON):
    {
      "settings": [
        {"domain": "com.apple.dock", "key": "tilesize",
         "original_value": null, "original_type": null, "new_value": "50"}
      ],
      "external": [{"name": "...", "run": "...", "sudo": false, ...}],
      "version": "0.1.0"
    }
"""
import asyncio
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from .. import __version__

logger = logging.getLogger(__name__)


class SnapshotError(Exception):
    """The snapshot file cannot be read or written."""
    pass


class SnapshotNotFoundError(SnapshotError):
    """No snapshot file exists."""
    pass


def get_snapshot_path() -> Path:
    """Snapshot location: $CUTLER_SNAPSHOT or ~/.cutler_snapshot."""
    explicit = os.environ.get("CUTLER_SNAPSHOT")
    if explicit:
        return Path(explicit).expanduser()
    return Path.home() / ".cutler_snapshot"


@dataclass
class SettingState:
    """One preference key changed by cutler (effective address)."""
    domain: str
    key: str
    original_value: Optional[str] = None  # None: key did not exist
    new_value: str = ""
    original_type: Optional[str] = None   # type flag of original_value

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SettingState":
        for name in ("domain", "key"):
            if not isinstance(data[name], str):
                raise TypeError(f"setting {name} must be a string, got {data[name]!r}")
        for name in ("original_value", "original_type"):
            value = data.get(name)
            if value is not None and not isinstance(value, str):
                raise TypeError(f"setting {name} must be a string or null, got {value!r}")
        if not isinstance(data.get("new_value", ""), str):
            raise TypeError(f"setting new_value must be a string, got {data['new_value']!r}")
        return cls(
            domain=data["domain"],
            key=data["key"],
            original_value=data.get("original_value"),
            new_value=data.get("new_value", ""),
            original_type=data.get("original_type"),
        )


@dataclass
class ExternalCommandState:
    """One external command executed during the last apply."""
    name: str
    run: str
    sudo: bool = False
    ensure_first: bool = False
    flag: bool = False
    required: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExternalCommandState":
        return cls(
            name=data.get("name", ""),
            run=data["run"],
            sudo=data.get("sudo", False),
            ensure_first=data.get("ensure_first", False),
            flag=data.get("flag", False),
            required=list(data.get("required", [])),
        )


@dataclass
class Snapshot:
    """The full snapshot document."""
    settings: list[SettingState] = field(default_factory=list)
    external: list[ExternalCommandState] = field(default_factory=list)
    version: str = __version__

    def find(self, domain: str, key: str) -> Optional[SettingState]:
        """Look up the entry for an effective address."""
        for entry in self.settings:
            if entry.domain == domain and entry.key == key:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            "settings": [asdict(s) for s in self.settings],
            "external": [asdict(e) for e in self.external],
            "version": self.version,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> "Snapshot":
        """Parse a snapshot document.

        Raises:
            SnapshotError: If the document is not a valid snapshot
        """
        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise TypeError("snapshot root must be an object")
            settings = [SettingState.from_dict(s) for s in data.get("settings", [])]
            external = [
                ExternalCommandState.from_dict(e) for e in data.get("external", [])
            ]
            version = str(data.get("version", ""))
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            raise SnapshotError(f"Malformed snapshot: {e}") from e

        return cls(settings=settings, external=external, version=version)


class SnapshotStore:
    """Load, save and delete the snapshot file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_snapshot_path()

    def exists(self) -> bool:
        return self.path.exists()

    async def load(self) -> Snapshot:
        """Read the snapshot from disk.

        Raises:
            SnapshotNotFoundError: If no snapshot file exists
            SnapshotError: If the file cannot be read or parsed
        """
        if not self.exists():
            raise SnapshotNotFoundError(f"No snapshot found at {self.path}")

        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except OSError as e:
            raise SnapshotError(f"Failed to read snapshot {self.path}: {e}") from e

        snapshot = Snapshot.from_json(text)
        if snapshot.version != __version__:
            logger.debug(
                f"Snapshot written by version {snapshot.version or 'unknown'}, "
                f"running {__version__}"
            )
        return snapshot

    async def save(self, snapshot: Snapshot) -> None:
        """Write the snapshot, replacing any previous one atomically."""
        snapshot.version = __version__
        await asyncio.to_thread(self._write, snapshot.to_json())
        logger.debug(f"Saved snapshot with {len(snapshot.settings)} settings to {self.path}")

    def _write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def delete(self) -> bool:
        """Remove the snapshot file.

        Returns:
            True if a file was removed
        """
        if not self.exists():
            return False
        try:
            await asyncio.to_thread(self.path.unlink)
        except OSError as e:
            raise SnapshotError(f"Could not delete snapshot file {self.path}: {e}") from e
        logger.debug(f"Deleted snapshot {self.path}")
        return True
