"""Per-domain write serialization.

The preference store is not safe for concurrent writers against one
domain file, so every write/delete takes the lock of its domain. Jobs
for different domains run in parallel.
"""
import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


class DomainLockRegistry:
    """Map of domain name -> asyncio.Lock, owned by one engine instance.

    Entries are created on first use and never removed.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, domain: str) -> asyncio.Lock:
        """Get (and create if missing) the lock for a domain.

        Repeated calls for the same domain return the same lock object.
        """
        with self._guard:
            lock = self._locks.get(domain)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[domain] = lock
                logger.debug(f"Created lock for domain {domain}")
            return lock

    @property
    def domains(self) -> list[str]:
        with self._guard:
            return list(self._locks)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
