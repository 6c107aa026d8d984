"""Audit logging for preference changes.

Every write/delete issued against the preference store is recorded as one
JSON line, including dry-run intents and failures:
- Timestamped entries
- Effective domain/key and the type flag/value written
- Separate audit log file (~/.cutler/audit.log)
"""
import json
import logging
import os
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Create dedicated audit logger
audit_logger = logging.getLogger("cutler.audit")

DEFAULT_AUDIT_DIR = os.path.expanduser("~/.cutler")


def setup_audit_logging(log_dir: Optional[str] = None) -> None:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.cutler/
    """
    if log_dir is None:
        log_dir = DEFAULT_AUDIT_DIR

    Path(log_dir).mkdir(parents=True, exist_ok=True)

    audit_file = os.path.join(log_dir, "audit.log")

    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )

    # Use JSON format for machine-readability
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)

    # Don't propagate to the console
    audit_logger.propagate = False


@dataclass
class ChangeRecord:
    """Record of a single preference mutation."""
    timestamp: str
    operation: str  # write, delete
    action: str     # Applying, Updating, Restoring, Removing, Resetting
    domain: str
    key: str
    dry_run: bool
    success: bool
    flag: Optional[str] = None
    value: Optional[str] = None
    output: str = ""
    error: Optional[str] = None

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        """Parse from JSON string."""
        data = json.loads(json_str)
        return cls(**data)


def log_change(
    operation: str,
    action: str,
    domain: str,
    key: str,
    success: bool,
    dry_run: bool = False,
    flag: Optional[str] = None,
    value: Optional[str] = None,
    output: str = "",
    error: Optional[str] = None,
) -> ChangeRecord:
    """Log a preference change to the audit trail.

    Returns:
        The ChangeRecord that was logged
    """
    record = ChangeRecord(
        timestamp=datetime.now(timezone.utc).isoformat(),
        operation=operation,
        action=action,
        domain=domain,
        key=key,
        dry_run=dry_run,
        success=success,
        flag=flag,
        value=value,
        output=output[:1000] if output else "",  # Truncate long output
        error=error,
    )

    audit_logger.info(record.to_json())

    return record


def get_recent_changes(
    log_file: Optional[str] = None,
    domain: Optional[str] = None,
    operation: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.cutler/audit.log
        domain: Filter by effective domain
        operation: Filter by operation ("write" or "delete")
        limit: Maximum number of records to return

    Returns:
        List of ChangeRecords, most recent first
    """
    if log_file is None:
        log_file = os.path.join(DEFAULT_AUDIT_DIR, "audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if domain and record.domain != domain:
                continue
            if operation and record.operation != operation:
                continue

            records.append(record)

    return list(reversed(records[-limit:]))
