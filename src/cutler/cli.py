#!/usr/bin/env python3
"""cutler command-line interface.

Usage:
    cutler [--dry-run] [-v] [-y] [--no-restart-services] [--config PATH] <command> [options]

Environment variables:
    CUTLER_CONFIG       Config file to use instead of the default search path
    CUTLER_SNAPSHOT     Snapshot file location (default: ~/.cutler_snapshot)
    CUTLER_LOG_LEVEL    Console log level (default: INFO)
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config.loader import (
    ConfigError,
    get_config_path,
    load_config,
    set_lock,
    write_default_config,
)
from .config.remote import fetch_remote_config
from .config_engine import ConfigEngine, DomainNotFoundError
from .external.runner import CommandError, ExecMode, ExternalRunner
from .snapshot.store import SnapshotError
from .system.services import ServiceRestarter
from .utils.audit_log import setup_audit_logging
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

# Errors reported as a one-line message with exit status 1
CUTLER_ERRORS = (ConfigError, SnapshotError, DomainNotFoundError, CommandError)


def confirm(prompt: str, assume_yes: bool = False) -> bool:
    """Ask a yes/no question on the terminal (default: no)."""
    if assume_yes:
        return True
    try:
        answer = input(f"{prompt} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def build_engine(args: argparse.Namespace) -> ConfigEngine:
    """Create the engine used by the subcommands."""
    return ConfigEngine()


def config_path(args: argparse.Namespace) -> Path:
    return Path(args.config).expanduser() if args.config else get_config_path()


def exec_mode_from(args: argparse.Namespace) -> Optional[ExecMode]:
    if getattr(args, "no_exec", False):
        return None
    if getattr(args, "all_exec", False) or getattr(args, "all", False):
        return ExecMode.ALL
    if getattr(args, "flagged", False):
        return ExecMode.FLAGGED
    return ExecMode.REGULAR


def build_restarter(args: argparse.Namespace) -> ServiceRestarter:
    """Create the restarter used after preferences change."""
    return ServiceRestarter()


async def restart_services(args: argparse.Namespace) -> None:
    """Restart Dock, Finder and the menu bar unless --no-restart-services."""
    if args.no_restart_services:
        return
    await build_restarter(args).restart(dry_run=args.dry_run)


def offer_init(path: Path, args: argparse.Namespace) -> bool:
    """Offer to create a config from the template when none exists."""
    print(f"No config file found at {path}.")
    if not confirm("Create one from the bundled template now?", args.yes):
        return False
    write_default_config(path, dry_run=args.dry_run)
    print("Review the new config and remove `lock = true` before applying it.")
    return True


# === COMMANDS ===

async def cmd_apply(args: argparse.Namespace) -> int:
    path = config_path(args)

    if args.url:
        if path.exists():
            # Lock gate before the local file can be replaced
            load_config(path)
            if not confirm(
                f"Local config {path} will be overwritten by the remote config. Continue?",
                args.yes,
            ):
                logger.warning("Aborted apply.")
                return 1
        config = await fetch_remote_config(args.url, path, save=not args.dry_run)
    elif not path.exists():
        return 0 if offer_init(path, args) else 1
    else:
        config = load_config(path)

    engine = build_engine(args)
    result = await engine.apply(
        config,
        dry_run=args.dry_run,
        check_domains=not args.no_check,
        exec_mode=exec_mode_from(args),
    )

    if result.changed:
        await restart_services(args)

    print(result.summary())
    if result.commands_run:
        print(f"Ran {len(result.commands_run)} external commands: {', '.join(result.commands_run)}")
    return 0 if result.success else 1


async def cmd_unapply(args: argparse.Namespace) -> int:
    path = config_path(args)
    config = load_config(path, lock_check=False) if path.exists() else None

    engine = build_engine(args)
    result = await engine.unapply(config, dry_run=args.dry_run)
    if result.outcomes:
        await restart_services(args)
    print(result.summary())
    return 0 if result.success else 1


async def cmd_reset(args: argparse.Namespace) -> int:
    config = load_config(config_path(args))

    if not args.dry_run and not confirm(
        "This will DELETE every configured preference, returning it to the system "
        "default. Continue?",
        args.yes,
    ):
        logger.warning("Aborted reset.")
        return 1

    engine = build_engine(args)
    result = await engine.reset(config, dry_run=args.dry_run)
    if result.outcomes:
        await restart_services(args)
    print(result.summary())
    return 0 if result.success else 1


async def cmd_status(args: argparse.Namespace) -> int:
    config = load_config(config_path(args), lock_check=False)

    engine = build_engine(args)
    entries = await engine.status(config)

    mismatched = 0
    for entry in entries:
        if entry.matched:
            print(f"  ok    {entry.domain} | {entry.key} = {entry.desired}")
        else:
            mismatched += 1
            current = entry.current if entry.current is not None else "(not set)"
            print(
                f"  diff  {entry.domain} | {entry.key}: "
                f"should be {entry.desired} (now {current})"
            )

    if mismatched:
        print(f"{mismatched} of {len(entries)} settings differ. Run `cutler apply` to fix.")
    else:
        print("All system preferences match the configuration.")
    return 0


async def cmd_exec(args: argparse.Namespace) -> int:
    config = load_config(config_path(args))
    runner = ExternalRunner()

    if args.name:
        await runner.run_one(config, args.name, dry_run=args.dry_run)
        return 0

    executed = await runner.run_all(config, exec_mode_from(args), dry_run=args.dry_run)
    print(f"Executed {len(executed)} external commands.")
    return 0


async def cmd_init(args: argparse.Namespace) -> int:
    path = config_path(args)

    if path.exists():
        logger.warning(f"Configuration file already exists at {path}")
        if not confirm("Do you want to overwrite it?", args.yes):
            logger.warning("Configuration init aborted.")
            return 1

    write_default_config(path, dry_run=args.dry_run)
    if not args.dry_run:
        print(f"Config created at {path}. Review and customize it before applying.")
    return 0


async def delete_config(args: argparse.Namespace, path: Path) -> int:
    """Remove the config, offering to unapply first when a snapshot exists."""
    if not path.exists():
        print("No config file to delete.")
        return 0

    snapshots = build_engine(args).snapshot_store
    if snapshots.exists():
        try:
            snapshot = await snapshots.load()
        except SnapshotError as e:
            logger.warning(f"Ignoring unreadable snapshot: {e}")
        else:
            print(
                f"Found a snapshot at {snapshots.path}. "
                f"It contains {len(snapshot.settings)} settings."
            )
            if confirm("Unapply all previously applied defaults?", args.yes):
                status = await cmd_unapply(args)
                if status != 0:
                    return status

    if args.dry_run:
        print(f"Would delete {path}")
        if snapshots.exists():
            print(f"Would delete {snapshots.path}")
        return 0

    path.unlink()
    print(f"Deleted config at {path}")
    if await snapshots.delete():
        print(f"Deleted snapshot at {snapshots.path}")
    return 0


async def cmd_config(args: argparse.Namespace) -> int:
    path = config_path(args)

    if args.action == "lock":
        set_lock(path, True, dry_run=args.dry_run)
    elif args.action == "unlock":
        set_lock(path, False, dry_run=args.dry_run)
    elif args.action == "delete":
        return await delete_config(args, path)
    else:
        config = load_config(path, lock_check=False)
        print(f"# {path}" + (" (locked)" if config.lock else ""))
        print(path.read_text(encoding="utf-8"))
    return 0


COMMANDS = {
    "init": cmd_init,
    "apply": cmd_apply,
    "unapply": cmd_unapply,
    "reset": cmd_reset,
    "status": cmd_status,
    "exec": cmd_exec,
    "config": cmd_config,
}


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cutler",
        description="Declarative macOS preference management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Create a starter config
    cutler init

    # Preview what apply would change
    cutler --dry-run apply

    # Apply the configuration, including flagged commands
    cutler apply --all-exec

    # Revert everything the last apply changed
    cutler unapply
""",
    )
    parser.add_argument("--version", action="version", version=f"cutler {__version__}")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print what would be done without changing anything",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "-y", "--yes",
        action="store_true",
        help="Answer yes to every confirmation prompt",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Config file to use (default: search path, or $CUTLER_CONFIG)",
    )
    parser.add_argument(
        "--no-restart-services",
        action="store_true",
        help="Do not restart Dock, Finder and SystemUIServer after changes",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create a config file from the bundled template")

    apply_parser = sub.add_parser("apply", help="Apply preferences from the config")
    apply_parser.add_argument("--url", help="Fetch the config from this URL first")
    exec_group = apply_parser.add_mutually_exclusive_group()
    exec_group.add_argument("--no-exec", action="store_true", help="Skip external commands")
    exec_group.add_argument("--all-exec", action="store_true", help="Also run flagged commands")
    exec_group.add_argument("--flagged", action="store_true", help="Run only flagged commands")
    apply_parser.add_argument(
        "--no-check",
        action="store_true",
        help="Do not verify that application domains exist",
    )

    sub.add_parser("unapply", help="Revert the changes of the last apply")
    sub.add_parser("reset", help="Delete configured preferences (system defaults)")
    sub.add_parser("status", help="Compare the config with current preferences")

    exec_parser = sub.add_parser("exec", help="Run external commands from the config")
    exec_parser.add_argument("name", nargs="?", help="Run only this command")
    mode_group = exec_parser.add_mutually_exclusive_group()
    mode_group.add_argument("--all", action="store_true", help="Include flagged commands")
    mode_group.add_argument("--flagged", action="store_true", help="Only flagged commands")

    config_parser = sub.add_parser("config", help="Manage the config file")
    config_parser.add_argument("action", choices=["lock", "unlock", "show", "delete"])

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the cutler CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(verbose=args.verbose)
    setup_audit_logging()

    handler = COMMANDS[args.command]
    try:
        return asyncio.run(handler(args))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except CUTLER_ERRORS as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
