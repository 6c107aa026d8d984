"""Base abstraction for the OS preference store."""
from abc import ABC, abstractmethod
from typing import Optional

# The domain shared by every application
GLOBAL_DOMAIN = "NSGlobalDomain"

# Type flags understood by the preference writer
TYPE_FLAGS = ("-bool", "-int", "-float", "-string")


class PreferenceStore(ABC):
    """Abstract access to a keyed preference store.

    All operations address a (domain, key) pair. Mutations report failure
    through their return value rather than raising, so callers can keep
    reconciling the remaining keys.
    """

    @abstractmethod
    async def read(self, domain: str, key: str) -> Optional[str]:
        """Read a value as a string, or None if the key/domain is absent."""
        pass

    @abstractmethod
    async def read_type(self, domain: str, key: str) -> Optional[str]:
        """Return the type flag of a stored value, or None if unknown."""
        pass

    @abstractmethod
    async def write(
        self, domain: str, key: str, flag: str, value: str
    ) -> tuple[bool, str]:
        """Write a value with an explicit type flag.

        Returns:
            Tuple of (success, output)
        """
        pass

    @abstractmethod
    async def delete(self, domain: str, key: str) -> tuple[bool, str]:
        """Delete a key.

        Returns:
            Tuple of (success, output)
        """
        pass

    @abstractmethod
    async def domain_exists(self, domain: str) -> bool:
        """Check directly whether a domain is known to the system."""
        pass

    @abstractmethod
    async def list_domains(self) -> set[str]:
        """List every domain known to the system."""
        pass
