"""Main Config Engine - orchestrates apply, unapply, reset and status.

Provides a single entry point for:
1. Validating the settings tree
2. Calculating the diff against live preferences
3. Executing writes/deletes concurrently under per-domain locks
4. Recording and reverting changes through the snapshot
5. Running external commands after apply
"""
import logging
from typing import Optional

from ..config.loader import ConfigError, ensure_unlocked
from ..config.schema import CutlerConfig
from ..external.runner import ExecMode, ExternalRunner
from ..snapshot.store import (
    SettingState,
    Snapshot,
    SnapshotError,
    SnapshotNotFoundError,
    SnapshotStore,
)
from ..system.base import PreferenceStore
from ..system.defaults import DefaultsStore
from ..system.reader import SystemReader
from ..utils.logging_config import timed_section
from .diff import DiffEngine, summarize_plan
from .executor import PreferenceExecutor
from .flags import from_flag
from .locks import DomainLockRegistry
from .schema import (
    ApplyResult,
    JobAction,
    JobKind,
    PreferenceJob,
    ResetResult,
    StatusEntry,
    UnapplyResult,
    ValidationResult,
)
from .validator import ConfigValidator

logger = logging.getLogger(__name__)


class ConfigEngine:
    """
    Main Config Engine for reconciling macOS preferences with a config.

    Usage:
        engine = ConfigEngine()
        result = await engine.apply(config, dry_run=True)
    """

    def __init__(
        self,
        store: Optional[PreferenceStore] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        runner: Optional[ExternalRunner] = None,
    ):
        """
        Initialize the Config Engine.

        Args:
            store: Preference store (default: the ``defaults`` command)
            snapshot_store: Snapshot file access (default: resolved path)
            runner: External command runner
        """
        self.store = store or DefaultsStore()
        self.snapshot_store = snapshot_store or SnapshotStore()
        self.runner = runner or ExternalRunner()
        self.locks = DomainLockRegistry()
        self.reader = SystemReader(self.store)
        self.executor = PreferenceExecutor(self.store, self.locks)
        self.diff_engine = DiffEngine(self.reader)
        self.validator = ConfigValidator()

    def validate(self, config: CutlerConfig) -> ValidationResult:
        """Validate the settings tree and raise on errors.

        Raises:
            ConfigError: If the tree contains invalid settings
        """
        validation = self.validator.validate(config.settings)
        for warning in validation.warnings:
            logger.warning(warning)
        if not validation.valid:
            raise ConfigError(
                "Invalid settings in configuration:\n  " + "\n  ".join(validation.errors)
            )
        return validation

    async def _load_previous(self) -> tuple[Snapshot, bool]:
        """Previous snapshot for apply; a corrupt one is replaced by an empty one."""
        try:
            return await self.snapshot_store.load(), False
        except SnapshotNotFoundError:
            return Snapshot(), False
        except SnapshotError as e:
            logger.warning(
                f"Bad snapshot: {e}; starting new. Note that when unapplying, "
                f"all your settings will reset to factory defaults."
            )
            return Snapshot(), True

    async def apply(
        self,
        config: CutlerConfig,
        dry_run: bool = False,
        check_domains: bool = True,
        exec_mode: Optional[ExecMode] = ExecMode.REGULAR,
    ) -> ApplyResult:
        """
        Apply the configuration to the system.

        Args:
            config: Parsed configuration
            dry_run: Log intended changes without touching the system
            check_domains: Verify ``com.apple.`` domains exist first
            exec_mode: Which external commands to run (None: skip them)

        Returns:
            ApplyResult with per-job outcomes

        Raises:
            ConfigLockedError: If the config is locked
            ConfigError: If the settings tree is invalid
            DomainNotFoundError: If a configured domain does not exist
        """
        ensure_unlocked(config)
        self.validate(config)

        result = ApplyResult(dry_run=dry_run)
        self.reader.prefetch_domains()
        try:
            async with timed_section("apply", dry_run=dry_run):
                previous, result.bad_snapshot = await self._load_previous()

                async with timed_section("apply.plan"):
                    plan = await self.diff_engine.plan(
                        config.settings, previous, check_domains=check_domains
                    )
                result.unchanged = len(plan.unchanged)

                if result.bad_snapshot:
                    for job in plan.jobs:
                        job.original_value = None
                        job.original_type = None

                if plan.no_change:
                    logger.info("No preference changes needed")
                else:
                    logger.info(summarize_plan(plan))

                async with timed_section("apply.execute", jobs=len(plan.jobs)):
                    result.outcomes = await self.executor.run_all(plan.jobs, dry_run)

                # Rewritten on every real apply, so a corrupt file never outlives it
                snapshot = self._next_snapshot(previous, plan.jobs)
                if dry_run:
                    logger.info("Dry-run: Would save snapshot with system preferences.")
                else:
                    await self.snapshot_store.save(snapshot)
                    result.snapshot_saved = True
                    logger.info("Logged system preferences change in snapshot.")

                if exec_mode is not None and config.commands:
                    executed = await self.runner.run_all(config, exec_mode, dry_run)
                    result.commands_run = [c.name for c in executed]
                    if executed and not dry_run:
                        snapshot.external = executed
                        await self.snapshot_store.save(snapshot)
                        result.snapshot_saved = True
                        logger.info("Logged command execution in snapshot.")
        finally:
            await self.reader.close()

        logger.info(result.summary())
        return result

    def _next_snapshot(self, previous: Snapshot, jobs: list[PreferenceJob]) -> Snapshot:
        """Untouched entries keep their order; entries touched now follow in job order."""
        touched = {(job.domain, job.key) for job in jobs}
        settings = [
            entry for entry in previous.settings
            if (entry.domain, entry.key) not in touched
        ]
        for job in jobs:
            settings.append(SettingState(
                domain=job.domain,
                key=job.key,
                original_value=job.original_value,
                new_value=job.new_value or "",
                original_type=job.original_type,
            ))
        return Snapshot(settings=settings, external=list(previous.external))

    async def unapply(
        self,
        config: Optional[CutlerConfig] = None,
        dry_run: bool = False,
    ) -> UnapplyResult:
        """
        Revert every change recorded in the snapshot.

        Entries are inverted last-applied-first: keys that existed before
        are restored, keys that did not are deleted.

        Raises:
            ConfigLockedError: If the given config is locked
            SnapshotNotFoundError: If there is nothing to revert
            SnapshotError: If the snapshot cannot be read
        """
        if config is not None:
            ensure_unlocked(config)

        try:
            snapshot = await self.snapshot_store.load()
        except SnapshotNotFoundError as e:
            raise SnapshotNotFoundError(
                "No snapshot found. Please run `cutler apply` first before unapplying.\n"
                "If you want to reset preferences to factory defaults, use `cutler reset` instead."
            ) from e
        except SnapshotError as e:
            raise SnapshotError(
                f"{e}. The snapshot is unusable; use `cutler reset` instead."
            ) from e

        jobs = [self._inverse(entry) for entry in reversed(snapshot.settings)]
        result = UnapplyResult(dry_run=dry_run, external_commands=len(snapshot.external))

        async with timed_section("unapply", entries=len(jobs), dry_run=dry_run):
            result.outcomes = await self.executor.run_all(jobs, dry_run)

        if snapshot.external:
            logger.warning(
                f"{len(snapshot.external)} external commands were executed during apply; "
                f"they cannot be reverted automatically."
            )

        if dry_run:
            logger.info(f"Dry-run: Would remove snapshot file at {self.snapshot_store.path}")
        else:
            result.snapshot_deleted = await self.snapshot_store.delete()

        logger.info(result.summary())
        return result

    @staticmethod
    def _inverse(entry: SettingState) -> PreferenceJob:
        """The job that undoes one snapshot entry."""
        if entry.original_value is None:
            return PreferenceJob(
                domain=entry.domain,
                key=entry.key,
                kind=JobKind.DELETE,
                action=JobAction.REMOVING,
            )

        if entry.original_type:
            flag, value = entry.original_type, entry.original_value
        else:
            flag, value = from_flag(entry.original_value)
        return PreferenceJob(
            domain=entry.domain,
            key=entry.key,
            kind=JobKind.WRITE,
            action=JobAction.RESTORING,
            flag=flag,
            value=value,
        )

    async def reset(self, config: CutlerConfig, dry_run: bool = False) -> ResetResult:
        """
        Delete every configured key that is currently set.

        Raises:
            ConfigLockedError: If the config is locked
            ConfigError: If the settings tree is invalid
        """
        ensure_unlocked(config)
        self.validate(config)

        result = ResetResult(dry_run=dry_run)
        async with timed_section("reset", dry_run=dry_run):
            entries = await self.diff_engine.status(config.settings)

            jobs = []
            for entry in entries:
                if entry.current is None:
                    logger.debug(f"Skipping {entry.domain} | {entry.key} (not set)")
                    result.skipped += 1
                    continue
                jobs.append(PreferenceJob(
                    domain=entry.domain,
                    key=entry.key,
                    kind=JobKind.DELETE,
                    action=JobAction.RESETTING,
                ))

            result.outcomes = await self.executor.run_all(jobs, dry_run)

        if self.snapshot_store.exists():
            if dry_run:
                logger.info(f"Dry-run: Would remove snapshot file at {self.snapshot_store.path}")
            else:
                result.snapshot_deleted = await self.snapshot_store.delete()

        logger.info(result.summary())
        return result

    async def status(self, config: CutlerConfig) -> list[StatusEntry]:
        """Compare every configured setting with the live value (read-only)."""
        self.validate(config)
        async with timed_section("status"):
            return await self.diff_engine.status(config.settings)
