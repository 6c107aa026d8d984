"""Runner for ``[command.<name>]`` tables.

Commands run through ``sh -c`` (or ``sudo sh -c``). Commands marked
``ensure_first`` run one after another before the rest, which then run
concurrently.
"""
import asyncio
import logging
import os
import re
import shutil
from enum import Enum
from typing import Any, Optional

from ..config.schema import CutlerConfig
from ..snapshot.store import ExternalCommandState

logger = logging.getLogger(__name__)

_VAR_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


class ExecMode(str, Enum):
    """Which commands a batch run selects."""
    REGULAR = "regular"  # everything except flagged commands
    ALL = "all"
    FLAGGED = "flagged"  # only flagged commands


class CommandError(Exception):
    """An external command is missing or cannot be run."""
    pass


def substitute(text: str, variables: Optional[dict[str, Any]] = None) -> str:
    """Expand ``$name`` and ``${name}`` references.

    ``[vars]`` entries take precedence over the environment. Unknown
    references are kept as written.
    """
    variables = variables or {}

    def replace(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        if name in variables:
            return str(variables[name])
        if name in os.environ:
            return os.environ[name]
        return match.group(0)

    return _VAR_RE.sub(replace, text)


def extract_command(config: CutlerConfig, name: str) -> ExternalCommandState:
    """Build the runnable state for one named command.

    Raises:
        CommandError: If the config has no such command
    """
    if not config.commands:
        raise CommandError("No commands are defined in the configuration")
    spec = config.commands.get(name)
    if spec is None:
        raise CommandError(f"No such command: {name}")

    return ExternalCommandState(
        name=name,
        run=substitute(spec.run, config.vars),
        sudo=spec.sudo,
        ensure_first=spec.ensure_first,
        flag=spec.flag,
        required=list(spec.required),
    )


def extract_all(config: CutlerConfig) -> list[ExternalCommandState]:
    """Every configured command, in document order."""
    return [extract_command(config, name) for name in config.commands]


def binaries_present(required: list[str]) -> bool:
    """True when every binary in ``required`` is found on PATH."""
    present = True
    for binary in required:
        if shutil.which(binary) is None:
            logger.warning(f"{binary} not found in $PATH.")
            present = False
    return present


def _selected(command: ExternalCommandState, mode: ExecMode) -> bool:
    if mode == ExecMode.REGULAR:
        return not command.flag
    if mode == ExecMode.FLAGGED:
        return command.flag
    return True


class ExternalRunner:
    """Execute external commands from the configuration."""

    def __init__(self, shell: str = "sh", timeout: Optional[float] = None):
        self.shell = shell
        self.timeout = timeout

    def argv(self, command: ExternalCommandState) -> list[str]:
        """Process arguments for a command."""
        args = [self.shell, "-c", command.run]
        if command.sudo:
            args.insert(0, "sudo")
        return args

    async def _spawn(self, args: list[str]) -> int:
        """Run a process with inherited stdio and return its exit status."""
        proc = await asyncio.create_subprocess_exec(*args)
        try:
            return await asyncio.wait_for(proc.wait(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise TimeoutError(f"Command timed out after {self.timeout}s")

    async def execute(self, command: ExternalCommandState, dry_run: bool = False) -> bool:
        """Run one command.

        Returns:
            True if it exited successfully (always True in dry-run)
        """
        args = self.argv(command)
        if dry_run:
            logger.info(f"Dry-run: Would execute: {' '.join(args[:-1])} {command.run}")
            return True

        logger.info(f"Executing command: {command.name}")
        try:
            status = await self._spawn(args)
        except (OSError, TimeoutError) as e:
            logger.error(f"External command {command.name} could not run: {e}")
            return False

        if status != 0:
            logger.error(f"External command failed: {command.name} (exit {status})")
            return False
        return True

    async def run_all(
        self,
        config: CutlerConfig,
        mode: ExecMode = ExecMode.REGULAR,
        dry_run: bool = False,
    ) -> list[ExternalCommandState]:
        """Run every selected command.

        Commands whose required binaries are missing are skipped.

        Returns:
            The commands that completed successfully, ensure_first ones
            first, then the rest in document order
        """
        first: list[ExternalCommandState] = []
        rest: list[ExternalCommandState] = []
        for command in extract_all(config):
            if not _selected(command, mode):
                continue
            if not binaries_present(command.required):
                logger.warning(f"Skipping command {command.name}: missing required binaries")
                continue
            (first if command.ensure_first else rest).append(command)

        succeeded: list[ExternalCommandState] = []
        failures = 0

        for command in first:
            if await self.execute(command, dry_run):
                succeeded.append(command)
            else:
                failures += 1

        results = await asyncio.gather(
            *(self.execute(command, dry_run) for command in rest),
            return_exceptions=True,
        )
        for command, result in zip(rest, results):
            if isinstance(result, BaseException):
                logger.error(f"External command {command.name} crashed: {result}")
                failures += 1
            elif result:
                succeeded.append(command)
            else:
                failures += 1

        if failures:
            logger.warning(f"{failures} external commands failed")

        return succeeded

    async def run_one(
        self,
        config: CutlerConfig,
        name: str,
        dry_run: bool = False,
    ) -> ExternalCommandState:
        """Run a single named command.

        Raises:
            CommandError: If the command is unknown, its required binaries
                are missing, or it fails
        """
        command = extract_command(config, name)
        if not binaries_present(command.required):
            raise CommandError(f"Required binaries for command {name} are missing")
        if not await self.execute(command, dry_run):
            raise CommandError(f"Command {name} failed")
        return command
