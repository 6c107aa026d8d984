"""Restart the macOS services that cache preferences.

Dock, Finder and the menu bar (SystemUIServer) only pick up most
preference changes after a restart; ``killall`` makes launchd relaunch them.
"""
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)

SERVICES = ("SystemUIServer", "Dock", "Finder")


class ServiceRestarter:
    """Restart preference-caching services with ``killall``."""

    def __init__(
        self,
        services: tuple[str, ...] = SERVICES,
        binary: str = "killall",
        timeout: Optional[float] = 10,
    ):
        self.services = services
        self.binary = binary
        self.timeout = timeout

    async def _spawn(self, args: list[str]) -> int:
        """Run a process quietly and return its exit status."""
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        try:
            return await asyncio.wait_for(proc.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise TimeoutError(f"{' '.join(args)} timed out after {self.timeout}s")

    async def restart(self, dry_run: bool = False) -> list[str]:
        """Restart every service in order.

        Failures are logged, never raised.

        Returns:
            Names of the services that were restarted (or would be, in dry-run)
        """
        restarted = []
        failed = False

        for service in self.services:
            if dry_run:
                logger.info(f"Dry-run: Would restart {service}")
                restarted.append(service)
                continue

            try:
                status = await self._spawn([self.binary, service])
            except (OSError, TimeoutError) as e:
                logger.error(f"Failed to restart {service}: {e}")
                failed = True
                continue

            if status != 0:
                logger.error(f"Failed to restart {service} (exit {status})")
                failed = True
            else:
                logger.info(f"{service} restarted")
                restarted.append(service)

        if failed:
            logger.warning(
                "Some services did not restart; log out and back in for every change to apply."
            )
        return restarted
