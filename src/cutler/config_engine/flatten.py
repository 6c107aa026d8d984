"""Flatten the ``[set]`` tree into preference domains and resolve addresses.

A table that holds at least one scalar becomes a domain; its name is the
dot-joined path of table keys below ``[set]``:

    [set.dock]                  -> ("dock", {...})
    [set.menuextra.clock]       -> ("menuextra.clock", {...})
    [set.NSGlobalDomain.com.apple.mouse]
                                -> ("NSGlobalDomain.com.apple.mouse", {...})
"""
from typing import Any, Iterator, Optional

from ..system.base import GLOBAL_DOMAIN

APPLE_PREFIX = "com.apple."


def flatten_domains(
    tree: dict[str, Any],
    prefix: Optional[str] = None,
) -> list[tuple[str, dict[str, Any]]]:
    """Partition a settings tree into (domain, settings-table) pairs.

    A node's own scalars are emitted before its nested tables, in
    document order. Tables without scalars produce no pair.
    """
    result: list[tuple[str, dict[str, Any]]] = []
    scalars: dict[str, Any] = {}
    nested: list[tuple[str, dict[str, Any]]] = []

    for key, value in tree.items():
        if isinstance(value, dict):
            nested.append((key, value))
        else:
            scalars[key] = value

    if scalars:
        result.append((prefix or "", scalars))

    for key, table in nested:
        child_prefix = f"{prefix}.{key}" if prefix else key
        result.extend(flatten_domains(table, child_prefix))

    return result


def iter_settings(tree: dict[str, Any]) -> Iterator[tuple[str, str, Any]]:
    """Yield every (domain, key, value) triple of a settings tree."""
    for domain, table in flatten_domains(tree):
        for key, value in table.items():
            yield domain, key, value


def effective(domain: str, key: str) -> tuple[str, str]:
    """Map a config domain and key to the real (domain, key) pair.

    Examples:
        ("NSGlobalDomain", "KeyRepeat") -> ("NSGlobalDomain", "KeyRepeat")
        ("NSGlobalDomain.com.apple.mouse", "linear")
            -> ("NSGlobalDomain", "com.apple.mouse.linear")
        ("dock", "tilesize") -> ("com.apple.dock", "tilesize")
    """
    if domain == GLOBAL_DOMAIN:
        return GLOBAL_DOMAIN, key

    global_prefix = GLOBAL_DOMAIN + "."
    if domain.startswith(global_prefix):
        rest = domain[len(global_prefix):]
        if not rest:
            return GLOBAL_DOMAIN, key
        return GLOBAL_DOMAIN, f"{rest}.{key}"

    return APPLE_PREFIX + domain, key


def needs_prefix(domain: str) -> bool:
    """True when the domain lives under ``com.apple.`` and must be checked."""
    return not domain.startswith(GLOBAL_DOMAIN)


def prefixed_domain(domain: str) -> str:
    """The ``com.apple.``-prefixed root domain checked for existence."""
    return APPLE_PREFIX + domain
