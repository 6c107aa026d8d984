"""Executor for preference writes and deletes.

Every mutation holds the lock of its domain for the duration of the OS
call. Failures are logged and reported per job; they never abort the
rest of the batch.
"""
import asyncio
import logging

from ..system.base import PreferenceStore
from ..utils.audit_log import log_change
from .locks import DomainLockRegistry
from .schema import JobAction, JobKind, JobOutcome, PreferenceJob

logger = logging.getLogger(__name__)


class PreferenceExecutor:
    """Run preference jobs against a PreferenceStore."""

    def __init__(self, store: PreferenceStore, locks: DomainLockRegistry):
        self.store = store
        self.locks = locks

    async def write(
        self,
        domain: str,
        key: str,
        flag: str,
        value: str,
        action: JobAction,
        dry_run: bool = False,
    ) -> JobOutcome:
        """Write one value under the domain lock."""
        job = PreferenceJob(
            domain=domain,
            key=key,
            kind=JobKind.WRITE,
            action=action,
            flag=flag,
            value=value,
        )
        return await self.run_job(job, dry_run)

    async def delete(
        self,
        domain: str,
        key: str,
        action: JobAction,
        dry_run: bool = False,
    ) -> JobOutcome:
        """Delete one key under the domain lock."""
        job = PreferenceJob(
            domain=domain,
            key=key,
            kind=JobKind.DELETE,
            action=action,
        )
        return await self.run_job(job, dry_run)

    async def run_job(self, job: PreferenceJob, dry_run: bool = False) -> JobOutcome:
        """Execute a single job.

        Dry-run takes the same lock and stops right before the OS call.
        """
        action = getattr(job.action, "value", job.action)
        display = self._display(job)

        async with self.locks.lock_for(job.domain):
            if dry_run:
                logger.info(f"Dry-run: Would execute: {display}")
                log_change(
                    operation=job.kind.value,
                    action=action,
                    domain=job.domain,
                    key=job.key,
                    success=True,
                    dry_run=True,
                    flag=job.flag,
                    value=job.value,
                )
                return JobOutcome(job=job, success=True)

            logger.debug(f"{action}: {display}")
            try:
                if job.kind == JobKind.WRITE:
                    success, output = await self.store.write(
                        job.domain, job.key, job.flag, job.value
                    )
                else:
                    success, output = await self.store.delete(job.domain, job.key)
                error = None if success else (output or "non-zero exit status")
            except Exception as e:
                success, output, error = False, "", str(e)

        if success:
            logger.info(f"{action} setting '{job.key}' for {job.domain}.")
        else:
            logger.error(
                f"Failed to {job.kind.value} setting '{job.key}' for {job.domain}: {error}"
            )

        log_change(
            operation=job.kind.value,
            action=action,
            domain=job.domain,
            key=job.key,
            success=success,
            flag=job.flag,
            value=job.value,
            output=output,
            error=error,
        )

        return JobOutcome(job=job, success=success, output=output, error=error)

    async def run_all(
        self,
        jobs: list[PreferenceJob],
        dry_run: bool = False,
    ) -> list[JobOutcome]:
        """Run jobs concurrently and wait for every one of them.

        Outcomes are returned in job order. A job that raises is reported
        as a failed outcome; its siblings still complete.
        """
        if not jobs:
            return []

        results = await asyncio.gather(
            *(self.run_job(job, dry_run) for job in jobs),
            return_exceptions=True,
        )

        outcomes = []
        for job, result in zip(jobs, results):
            if isinstance(result, BaseException):
                logger.error(f"Job {job.describe()} crashed: {result}")
                outcomes.append(JobOutcome(job=job, success=False, error=str(result)))
            else:
                outcomes.append(result)

        failures = sum(1 for o in outcomes if not o.success)
        if failures:
            logger.warning(f"{failures} of {len(outcomes)} preference changes failed")

        return outcomes

    @staticmethod
    def _display(job: PreferenceJob) -> str:
        """Shell-like rendering of the underlying defaults call."""
        text = f'defaults {job.kind.value} {job.domain} "{job.key}"'
        if job.kind == JobKind.WRITE:
            text += f' {job.flag} "{job.value}"'
        return text
