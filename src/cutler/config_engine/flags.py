"""Value normalization and type-flag encoding for the preference writer.

Two string forms exist for each configured value:
- the canonical form compared against ``defaults read`` output
  (booleans read back as "1"/"0")
- the (type flag, value) pair passed to ``defaults write``
  (booleans are written as the literal words "true"/"false")
"""
import re
from typing import Any

from ..config.loader import ConfigError

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(
    r"^[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|inf|infinity|nan)$",
    re.IGNORECASE,
)

BOOL_WORDS = {"1", "0", "true", "false"}


class UnsupportedValueError(ConfigError):
    """A setting value cannot be written to the preference store."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(
            f"Unsupported type encountered in configuration: "
            f"{type(value).__name__} ({value!r})"
        )


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (bool, int, float, str))


def normalize(value: Any) -> str:
    """Canonical comparison form of a configured value.

    Raises:
        UnsupportedValueError: For arrays, tables and other non-scalars
    """
    if not _is_scalar(value):
        raise UnsupportedValueError(value)
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def to_flag(value: Any) -> tuple[str, str]:
    """Type flag and string value for ``defaults write``.

    Raises:
        UnsupportedValueError: For arrays, tables and other non-scalars
    """
    # bool is checked before int: True is an int in Python
    if isinstance(value, bool):
        return "-bool", "true" if value else "false"
    if isinstance(value, int):
        return "-int", str(value)
    if isinstance(value, float):
        return "-float", str(value)
    if isinstance(value, str):
        return "-string", value
    raise UnsupportedValueError(value)


def from_flag(value: str) -> tuple[str, str]:
    """Guess a type flag for a stored string with no recorded type.

    Classification order: boolean words, 64-bit integer, float, string.
    "1" and "0" are always treated as booleans.
    """
    if value in BOOL_WORDS:
        return "-bool", value

    if _INT_RE.match(value) and INT64_MIN <= int(value) <= INT64_MAX:
        return "-int", value

    if _FLOAT_RE.match(value):
        return "-float", value

    return "-string", value
