"""PreferenceStore backed by the macOS ``defaults`` command."""
import asyncio
import logging
from typing import Optional

from ..utils.retry import with_retry
from .base import GLOBAL_DOMAIN, PreferenceStore

logger = logging.getLogger(__name__)

# Output of `defaults read-type` -> write flag
READ_TYPE_FLAGS = {
    "boolean": "-bool",
    "integer": "-int",
    "float": "-float",
    "string": "-string",
}


class DefaultsStore(PreferenceStore):
    """Talk to the user preference database through ``defaults(1)``."""

    def __init__(self, binary: str = "defaults", timeout: float = 30):
        self.binary = binary
        self.timeout = timeout

    async def _run(self, *args: str) -> tuple[int, str, str]:
        """Run ``defaults`` with the given arguments.

        Returns:
            Tuple of (returncode, stdout, stderr)
        """
        logger.debug(f"Running: {self.binary} {' '.join(args)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary, *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.error(f"{self.binary} not found in PATH")
            return 127, "", f"{self.binary}: command not found"

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise TimeoutError(
                f"{self.binary} {' '.join(args)} timed out after {self.timeout}s"
            )

        return (
            proc.returncode,
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )

    async def read(self, domain: str, key: str) -> Optional[str]:
        code, out, _ = await self._run("read", domain, key)
        if code != 0:
            return None
        value = out.strip()
        return value or None

    async def read_type(self, domain: str, key: str) -> Optional[str]:
        code, out, _ = await self._run("read-type", domain, key)
        if code != 0:
            return None
        # "Type is boolean"
        type_name = out.strip().rsplit(" ", 1)[-1].lower()
        return READ_TYPE_FLAGS.get(type_name)

    async def write(
        self, domain: str, key: str, flag: str, value: str
    ) -> tuple[bool, str]:
        code, out, err = await self._run("write", domain, key, flag, value)
        return code == 0, (out + err).strip()

    async def delete(self, domain: str, key: str) -> tuple[bool, str]:
        code, out, err = await self._run("delete", domain, key)
        return code == 0, (out + err).strip()

    async def domain_exists(self, domain: str) -> bool:
        if domain == GLOBAL_DOMAIN:
            return True
        code, _, _ = await self._run("read", domain)
        return code == 0

    @with_retry(max_attempts=3)
    async def list_domains(self) -> set[str]:
        code, out, err = await self._run("domains")
        if code != 0:
            logger.warning(f"Could not list preference domains: {err.strip()}")
            return {GLOBAL_DOMAIN}
        domains = {d.strip() for d in out.split(",") if d.strip()}
        domains.add(GLOBAL_DOMAIN)
        return domains
