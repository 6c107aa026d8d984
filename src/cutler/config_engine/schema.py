"""Schema definitions for the Config Engine.

Defines preference jobs, their outcomes and the result objects returned
by apply, unapply, reset and status.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class JobKind(str, Enum):
    """Kind of preference mutation."""
    WRITE = "write"
    DELETE = "delete"


class JobAction(str, Enum):
    """Label describing why a mutation happens."""
    APPLYING = "Applying"    # First time cutler touches the key
    UPDATING = "Updating"    # Key already tracked by the snapshot
    RESTORING = "Restoring"  # Unapply: put the original value back
    REMOVING = "Removing"    # Unapply: key did not exist before cutler
    RESETTING = "Resetting"  # Reset: delete the configured key


@dataclass
class PreferenceJob:
    """A single preference mutation against an effective address."""
    domain: str
    key: str
    kind: JobKind
    action: JobAction
    flag: Optional[str] = None
    value: Optional[str] = None
    # Snapshot bookkeeping (apply only)
    new_value: Optional[str] = None
    original_value: Optional[str] = None
    original_type: Optional[str] = None

    def describe(self) -> str:
        """Human-readable one-line description."""
        if self.kind == JobKind.DELETE:
            return f"{self.action.value} {self.domain} | {self.key} (delete)"
        text = f"{self.action.value} {self.domain} | {self.key} -> {self.flag} {self.value}"
        if self.action in (JobAction.APPLYING, JobAction.UPDATING) and self.original_value is not None:
            text += f" (restorable to {self.original_value})"
        return text


@dataclass
class JobOutcome:
    """Result of running one PreferenceJob."""
    job: PreferenceJob
    success: bool
    output: str = ""
    error: Optional[str] = None


@dataclass
class ValidationResult:
    """Result of settings validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ApplyPlan:
    """Jobs needed to converge the system on the configuration."""
    jobs: list[PreferenceJob] = field(default_factory=list)
    unchanged: list[tuple[str, str]] = field(default_factory=list)

    @property
    def no_change(self) -> bool:
        return len(self.jobs) == 0


@dataclass
class StatusEntry:
    """Desired vs current value of one configured setting."""
    domain: str
    key: str
    desired: str
    current: Optional[str]

    @property
    def matched(self) -> bool:
        return self.current is not None and self.current == self.desired

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "key": self.key,
            "desired": self.desired,
            "current": self.current,
            "matched": self.matched,
        }


def _count_failures(outcomes: list[JobOutcome]) -> int:
    return sum(1 for o in outcomes if not o.success)


@dataclass
class ApplyResult:
    """Result of an apply run."""
    dry_run: bool = False
    outcomes: list[JobOutcome] = field(default_factory=list)
    unchanged: int = 0
    snapshot_saved: bool = False
    bad_snapshot: bool = False
    commands_run: list[str] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> int:
        return _count_failures(self.outcomes)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def summary(self) -> str:
        if self.changed == 0:
            return "System preferences already match the configuration."
        prefix = "Would apply" if self.dry_run else "Applied"
        text = f"{prefix} {self.changed - self.failed} of {self.changed} setting changes"
        if self.failed:
            text += f" ({self.failed} failed)"
        return text + "."

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "changed": self.changed,
            "failed": self.failed,
            "unchanged": self.unchanged,
            "changes": [o.job.describe() for o in self.outcomes],
            "snapshot_saved": self.snapshot_saved,
            "commands_run": self.commands_run,
            "summary": self.summary(),
        }


@dataclass
class UnapplyResult:
    """Result of an unapply run."""
    dry_run: bool = False
    outcomes: list[JobOutcome] = field(default_factory=list)
    snapshot_deleted: bool = False
    external_commands: int = 0

    @property
    def restored(self) -> int:
        return sum(
            1 for o in self.outcomes
            if o.success and o.job.kind == JobKind.WRITE
        )

    @property
    def removed(self) -> int:
        return sum(
            1 for o in self.outcomes
            if o.success and o.job.kind == JobKind.DELETE
        )

    @property
    def failed(self) -> int:
        return _count_failures(self.outcomes)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def summary(self) -> str:
        if not self.outcomes:
            return "Snapshot contained no settings to revert."
        prefix = "Would revert" if self.dry_run else "Reverted"
        text = (
            f"{prefix} {len(self.outcomes)} settings "
            f"({self.restored} restored, {self.removed} removed"
        )
        if self.failed:
            text += f", {self.failed} failed"
        return text + ")."

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "restored": self.restored,
            "removed": self.removed,
            "failed": self.failed,
            "changes": [o.job.describe() for o in self.outcomes],
            "snapshot_deleted": self.snapshot_deleted,
            "summary": self.summary(),
        }


@dataclass
class ResetResult:
    """Result of a reset run."""
    dry_run: bool = False
    outcomes: list[JobOutcome] = field(default_factory=list)
    skipped: int = 0
    snapshot_deleted: bool = False

    @property
    def removed(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return _count_failures(self.outcomes)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def summary(self) -> str:
        prefix = "Would reset" if self.dry_run else "Reset"
        text = f"{prefix} {self.removed} settings to system defaults, {self.skipped} not set"
        if self.failed:
            text += f", {self.failed} failed"
        return text + "."

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "dry_run": self.dry_run,
            "removed": self.removed,
            "skipped": self.skipped,
            "failed": self.failed,
            "snapshot_deleted": self.snapshot_deleted,
            "summary": self.summary(),
        }
