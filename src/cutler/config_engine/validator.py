"""Pre-flight validation of the ``[set]`` settings tree.

Catches configuration errors before any preference is read or written.
"""
from typing import Any, Optional

from .flags import INT64_MAX, INT64_MIN
from .flatten import effective, flatten_domains
from .schema import ValidationResult


def _type_name(value: Any) -> str:
    if isinstance(value, list):
        return "array"
    return type(value).__name__


class ConfigValidator:
    """Validate a settings tree for values the preference store cannot hold."""

    def validate(self, tree: Any) -> ValidationResult:
        """
        Validate a settings tree.

        Performs pre-flight checks:
        - The tree is a table
        - Every setting lives inside a domain table
        - Domain path segments are non-empty
        - Values are booleans, 64-bit integers, floats or strings
        - Two settings resolving to the same address (warning)
        - Empty domain tables (warning)

        Returns:
            ValidationResult with valid flag, errors, and warnings
        """
        errors: list[str] = []
        warnings: list[str] = []

        if not isinstance(tree, dict):
            errors.append(f"[set] must be a table, got {_type_name(tree)}")
            return ValidationResult(valid=False, errors=errors)

        self._check_empty_tables(tree, None, warnings)

        seen: dict[tuple[str, str], str] = {}
        for domain, table in flatten_domains(tree):
            if not domain:
                for key in table:
                    errors.append(
                        f"Setting '{key}' must be inside a domain table like [set.dock]"
                    )
                continue

            if any(segment == "" for segment in domain.split(".")):
                errors.append(f"Domain '{domain}' contains an empty name segment")
                continue

            for key, value in table.items():
                self._check_value(domain, key, value, errors)

                address = effective(domain, key)
                label = f"{domain}.{key}"
                if address in seen:
                    warnings.append(
                        f"{label} and {seen[address]} both set "
                        f"{address[0]} | {address[1]}; the last one wins"
                    )
                seen[address] = label

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _check_value(
        self,
        domain: str,
        key: str,
        value: Any,
        errors: list[str],
    ) -> None:
        """Check that a leaf value is writable."""
        if isinstance(value, bool) or isinstance(value, (float, str)):
            return
        if isinstance(value, int):
            if not INT64_MIN <= value <= INT64_MAX:
                errors.append(f"{domain}.{key}: integer {value} is out of 64-bit range")
            return
        errors.append(
            f"{domain}.{key}: unsupported value type {_type_name(value)}"
        )

    def _check_empty_tables(
        self,
        tree: dict[str, Any],
        prefix: Optional[str],
        warnings: list[str],
    ) -> None:
        """Warn about tables with no settings and no sub-tables."""
        for key, value in tree.items():
            if not isinstance(value, dict):
                continue
            path = f"{prefix}.{key}" if prefix else key
            if not value:
                warnings.append(f"Domain table [set.{path}] is empty")
            else:
                self._check_empty_tables(value, path, warnings)
