"""Config Engine - reconcile macOS preferences with a configuration.

Usage:
    from cutler.config_engine import ConfigEngine

    engine = ConfigEngine()
    result = await engine.apply(config, dry_run=True)
"""
from .schema import (
    ApplyPlan,
    ApplyResult,
    JobAction,
    JobKind,
    JobOutcome,
    PreferenceJob,
    ResetResult,
    StatusEntry,
    UnapplyResult,
    ValidationResult,
)
from .flags import UnsupportedValueError, from_flag, normalize, to_flag
from .flatten import effective, flatten_domains, needs_prefix
from .locks import DomainLockRegistry
from .validator import ConfigValidator
from .diff import DiffEngine, DomainNotFoundError, summarize_plan
from .executor import PreferenceExecutor
from .engine import ConfigEngine

__all__ = [
    "ApplyPlan",
    "ApplyResult",
    "JobAction",
    "JobKind",
    "JobOutcome",
    "PreferenceJob",
    "ResetResult",
    "StatusEntry",
    "UnapplyResult",
    "ValidationResult",
    "UnsupportedValueError",
    "from_flag",
    "normalize",
    "to_flag",
    "effective",
    "flatten_domains",
    "needs_prefix",
    "DomainLockRegistry",
    "ConfigValidator",
    "DiffEngine",
    "DomainNotFoundError",
    "summarize_plan",
    "PreferenceExecutor",
    "ConfigEngine",
]
