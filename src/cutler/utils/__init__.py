"""Utility modules for logging, auditing and retries."""
from .audit_log import ChangeRecord, get_recent_changes, log_change, setup_audit_logging
from .logging_config import setup_logging, timed_section, perf_logger
from .retry import with_retry, RETRYABLE_EXCEPTIONS

__all__ = [
    "ChangeRecord",
    "get_recent_changes",
    "log_change",
    "setup_audit_logging",
    "setup_logging",
    "timed_section",
    "perf_logger",
    "with_retry",
    "RETRYABLE_EXCEPTIONS",
]
