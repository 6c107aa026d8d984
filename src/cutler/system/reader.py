"""Read-side access to live preference state.

The reader wraps a PreferenceStore and owns the domain-existence cache.
The cache is filled by a single background listing call; lookups made
before that call finishes fall back to a direct per-domain check.
"""
import asyncio
import logging
from typing import Optional

from .base import GLOBAL_DOMAIN, PreferenceStore

logger = logging.getLogger(__name__)


class SystemReader:
    """Query current preference values and known domains."""

    def __init__(self, store: PreferenceStore):
        self.store = store
        self._known_domains: set[str] = set()
        self._listing: Optional[asyncio.Task] = None

    def prefetch_domains(self) -> None:
        """Start listing all domains in the background (once)."""
        if self._listing is None:
            self._listing = asyncio.get_running_loop().create_task(
                self.store.list_domains()
            )

    def _collect_listing(self) -> None:
        """Merge a finished background listing into the cache."""
        if self._listing is None or not self._listing.done():
            return
        if self._listing.cancelled():
            return
        exc = self._listing.exception()
        if exc is not None:
            logger.warning(f"Domain listing failed, using direct checks: {exc}")
            return
        self._known_domains.update(self._listing.result())

    async def read_current(self, domain: str, key: str) -> Optional[str]:
        """Current value of a key as a trimmed string, None when absent."""
        try:
            value = await self.store.read(domain, key)
        except Exception as e:
            logger.debug(f"Read of {domain} | {key} failed: {e}")
            return None
        if value is None:
            return None
        value = value.strip()
        return value or None

    async def read_type(self, domain: str, key: str) -> Optional[str]:
        """Type flag of the current value, None when unknown."""
        try:
            return await self.store.read_type(domain, key)
        except Exception as e:
            logger.debug(f"Type read of {domain} | {key} failed: {e}")
            return None

    async def domain_exists(self, domain: str) -> bool:
        """Check whether the system knows a domain.

        Uses the listing cache when it already contains the domain,
        otherwise asks the store directly.
        """
        if domain == GLOBAL_DOMAIN:
            return True

        self._collect_listing()
        if domain in self._known_domains:
            return True

        exists = await self.store.domain_exists(domain)
        if exists:
            self._known_domains.add(domain)
        return exists

    async def close(self) -> None:
        """Cancel a still-running background listing."""
        if self._listing is not None and not self._listing.done():
            self._listing.cancel()
            try:
                await self._listing
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Domain listing ended with error: {e}")
        self._collect_listing()
