"""Diff engine for calculating changes between configured and live preferences.

Computes the minimal set of preference writes needed to reach the
configured state, and decides per key whether it is tracked for the
first time or already recorded in the snapshot.
"""
import asyncio
import logging
from typing import Any, Optional

from ..snapshot.store import Snapshot
from ..system.reader import SystemReader
from .flags import normalize, to_flag
from .flatten import effective, flatten_domains, needs_prefix, prefixed_domain
from .schema import ApplyPlan, JobAction, JobKind, PreferenceJob, StatusEntry

logger = logging.getLogger(__name__)


class DomainNotFoundError(Exception):
    """A configured application domain is unknown to the system."""

    def __init__(self, domain: str):
        self.domain = domain
        super().__init__(
            f"Domain '{domain}' not found. Check the [set] table name "
            f"or open the application once so it creates its preferences."
        )


class DiffEngine:
    """Calculate differences between the settings tree and the system."""

    def __init__(self, reader: SystemReader, max_concurrency: int = 8):
        self.reader = reader
        self.max_concurrency = max_concurrency

    async def check_domains(self, tree: dict[str, Any]) -> None:
        """Verify every ``com.apple.`` domain exists before anything is read.

        Raises:
            DomainNotFoundError: On the first missing domain
        """
        for domain, _ in flatten_domains(tree):
            if not needs_prefix(domain):
                continue
            target = prefixed_domain(domain)
            if not await self.reader.domain_exists(target):
                raise DomainNotFoundError(target)

    def resolve(self, tree: dict[str, Any]) -> list[tuple[str, str, Any]]:
        """Effective (domain, key, value) triples of a settings tree.

        When two settings share an effective address the last value wins
        and keeps the position of the first.
        """
        resolved: dict[tuple[str, str], Any] = {}
        for domain, table in flatten_domains(tree):
            for key, value in table.items():
                address = effective(domain, key)
                if address in resolved:
                    logger.warning(
                        f"{domain}.{key} overrides an earlier setting for "
                        f"{address[0]} | {address[1]}"
                    )
                resolved[address] = value
        return [(d, k, v) for (d, k), v in resolved.items()]

    async def plan(
        self,
        tree: dict[str, Any],
        snapshot: Snapshot,
        check_domains: bool = True,
    ) -> ApplyPlan:
        """
        Calculate the jobs needed to converge the system on a settings tree.

        Args:
            tree: The ``[set]`` table of the configuration
            snapshot: Snapshot of the previous apply (may be empty)
            check_domains: Verify ``com.apple.`` domains exist first

        Returns:
            ApplyPlan with jobs in configuration order

        Raises:
            DomainNotFoundError: If a configured domain does not exist
            UnsupportedValueError: If a value cannot be written
        """
        if check_domains:
            await self.check_domains(tree)

        settings = self.resolve(tree)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def diff_one(domain: str, key: str, value: Any) -> Optional[PreferenceJob]:
            desired = normalize(value)
            async with semaphore:
                current = await self.reader.read_current(domain, key)
            if current == desired:
                logger.debug(f"Unchanged: {domain} | {key} = {desired}")
                return None

            flag, write_value = to_flag(value)
            previous = snapshot.find(domain, key)
            if previous is not None:
                # Keep the value from before cutler first touched the key
                return PreferenceJob(
                    domain=domain,
                    key=key,
                    kind=JobKind.WRITE,
                    action=JobAction.UPDATING,
                    flag=flag,
                    value=write_value,
                    new_value=desired,
                    original_value=previous.original_value,
                    original_type=previous.original_type,
                )

            original_type = None
            if current is not None:
                async with semaphore:
                    original_type = await self.reader.read_type(domain, key)
            return PreferenceJob(
                domain=domain,
                key=key,
                kind=JobKind.WRITE,
                action=JobAction.APPLYING,
                flag=flag,
                value=write_value,
                new_value=desired,
                original_value=current,
                original_type=original_type,
            )

        jobs = await asyncio.gather(*(diff_one(d, k, v) for d, k, v in settings))

        plan = ApplyPlan()
        for (domain, key, _), job in zip(settings, jobs):
            if job is None:
                plan.unchanged.append((domain, key))
            else:
                plan.jobs.append(job)

        logger.info(
            f"Planned {len(plan.jobs)} changes, {len(plan.unchanged)} settings unchanged"
        )
        return plan

    async def status(self, tree: dict[str, Any]) -> list[StatusEntry]:
        """Desired vs current value of every configured setting."""
        settings = self.resolve(tree)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def read_one(domain: str, key: str, value: Any) -> StatusEntry:
            async with semaphore:
                current = await self.reader.read_current(domain, key)
            return StatusEntry(
                domain=domain,
                key=key,
                desired=normalize(value),
                current=current,
            )

        return list(await asyncio.gather(*(read_one(d, k, v) for d, k, v in settings)))


def summarize_plan(plan: ApplyPlan) -> str:
    """
    Create a human-readable summary of a plan.

    Useful for dry-run output and logging.
    """
    if plan.no_change:
        return "No changes needed - system preferences match the configuration"

    lines = [f"Changes to apply ({len(plan.jobs)} total):", ""]
    for job in plan.jobs:
        marker = "[+]" if job.action == JobAction.APPLYING else "[~]"
        lines.append(f"  {marker} {job.domain} | {job.key} -> {job.flag} {job.value}")
        if job.original_value is not None:
            lines.append(f"      (was: {job.original_value})")

    if plan.unchanged:
        lines.append("")
        lines.append(f"{len(plan.unchanged)} settings already match")

    return "\n".join(lines)
