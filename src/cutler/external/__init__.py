"""External commands declared in the configuration."""
from .runner import (
    CommandError,
    ExecMode,
    ExternalRunner,
    binaries_present,
    extract_all,
    extract_command,
    substitute,
)

__all__ = [
    "CommandError",
    "ExecMode",
    "ExternalRunner",
    "binaries_present",
    "extract_all",
    "extract_command",
    "substitute",
]
