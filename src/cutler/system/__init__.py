"""Access to the OS preference store."""
from .base import GLOBAL_DOMAIN, TYPE_FLAGS, PreferenceStore
from .defaults import DefaultsStore
from .reader import SystemReader
from .services import SERVICES, ServiceRestarter

__all__ = [
    "GLOBAL_DOMAIN",
    "TYPE_FLAGS",
    "PreferenceStore",
    "DefaultsStore",
    "SystemReader",
    "SERVICES",
    "ServiceRestarter",
]
