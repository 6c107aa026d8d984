"""MCP Server for declarative macOS preference management.

Exposes the cutler engine to MCP clients over stdio.

Tools exposed:
- status: Compare configured settings with live preferences
- apply: Apply the configuration (declarative)
- unapply: Revert everything the last apply changed
- reset: Delete every configured key (back to system defaults)
- exec: Run external commands from the configuration
- recent_changes: Read back the preference change audit trail
"""
import asyncio
import json
import logging
import os
from dataclasses import asdict
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config.loader import ConfigNotFoundError, load_config
from .config_engine import ConfigEngine
from .external.runner import ExecMode, ExternalRunner
from .utils.audit_log import get_recent_changes, setup_audit_logging
from .utils.logging_config import setup_logging, timed_section

logger = logging.getLogger(__name__)

# Global engine (created on first tool call)
engine: Optional[ConfigEngine] = None


def get_engine() -> ConfigEngine:
    """Get or create the config engine."""
    global engine
    if engine is None:
        engine = ConfigEngine()
    return engine


def _config_path() -> Optional[str]:
    return os.environ.get("CUTLER_CONFIG")


def _json(response: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(response, indent=2))]


# Create MCP server
server = Server("cutler")


DRY_RUN_PROPERTY = {
    "type": "boolean",
    "description": "Preview changes without applying them",
    "default": False,
}


# === TOOLS ===

@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    return [
        Tool(
            name="status",
            description="Compare every configured preference with its current value on this Mac",
            inputSchema={
                "type": "object",
                "properties": {},
                "required": []
            }
        ),
        Tool(
            name="apply",
            description=(
                "Apply the cutler configuration: write every preference that differs "
                "and record the original values so the change can be reverted"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "dry_run": DRY_RUN_PROPERTY,
                    "exec_mode": {
                        "type": "string",
                        "enum": ["regular", "all", "flagged", "none"],
                        "description": "Which external commands to run afterwards",
                        "default": "regular"
                    },
                    "check_domains": {
                        "type": "boolean",
                        "description": "Fail if a configured application domain does not exist",
                        "default": True
                    }
                },
                "required": []
            }
        ),
        Tool(
            name="unapply",
            description="Revert all preference changes recorded by the last apply",
            inputSchema={
                "type": "object",
                "properties": {"dry_run": DRY_RUN_PROPERTY},
                "required": []
            }
        ),
        Tool(
            name="reset",
            description="Delete every configured preference key, returning it to the system default",
            inputSchema={
                "type": "object",
                "properties": {"dry_run": DRY_RUN_PROPERTY},
                "required": []
            }
        ),
        Tool(
            name="exec",
            description="Run one named external command, or all selected commands",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Command name from a [command.<name>] table"
                    },
                    "mode": {
                        "type": "string",
                        "enum": ["regular", "all", "flagged"],
                        "default": "regular"
                    },
                    "dry_run": DRY_RUN_PROPERTY
                },
                "required": []
            }
        ),
        Tool(
            name="recent_changes",
            description="Show recent preference writes and deletes from the audit log",
            inputSchema={
                "type": "object",
                "properties": {
                    "domain": {
                        "type": "string",
                        "description": "Only changes to this preference domain"
                    },
                    "limit": {
                        "type": "integer",
                        "default": 20
                    }
                },
                "required": []
            }
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    async with timed_section(f"tool:{name}"):
        try:
            if name == "status":
                return await handle_status()

            elif name == "apply":
                return await handle_apply(
                    arguments.get("dry_run", False),
                    arguments.get("exec_mode", "regular"),
                    arguments.get("check_domains", True),
                )

            elif name == "unapply":
                return await handle_unapply(arguments.get("dry_run", False))

            elif name == "reset":
                return await handle_reset(arguments.get("dry_run", False))

            elif name == "exec":
                return await handle_exec(
                    arguments.get("name"),
                    arguments.get("mode", "regular"),
                    arguments.get("dry_run", False),
                )

            elif name == "recent_changes":
                return await handle_recent_changes(
                    arguments.get("domain"),
                    arguments.get("limit", 20),
                )

            else:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]

        except Exception as e:
            logger.exception(f"Tool {name} failed")
            return _json({"success": False, "error": str(e)})


# === TOOL HANDLERS ===

async def handle_status() -> list[TextContent]:
    """Compare configured settings with the system."""
    config = load_config(_config_path(), lock_check=False)
    entries = await get_engine().status(config)
    mismatched = [e for e in entries if not e.matched]
    return _json({
        "success": True,
        "total": len(entries),
        "matched": len(entries) - len(mismatched),
        "settings": [e.to_dict() for e in entries],
    })


async def handle_apply(dry_run: bool, exec_mode: str, check_domains: bool) -> list[TextContent]:
    """
    Apply the configuration.

    Use dry_run=True to preview changes without applying.
    """
    config = load_config(_config_path())
    mode = None if exec_mode == "none" else ExecMode(exec_mode)
    result = await get_engine().apply(
        config,
        dry_run=dry_run,
        check_domains=check_domains,
        exec_mode=mode,
    )
    response = result.to_dict()
    if result.bad_snapshot:
        response["warnings"] = [
            "Previous snapshot was unreadable; unapply will reset these settings to system defaults"
        ]
    return _json(response)


async def handle_unapply(dry_run: bool) -> list[TextContent]:
    """Revert the last apply."""
    try:
        config = load_config(_config_path(), lock_check=False)
    except ConfigNotFoundError:
        config = None
    result = await get_engine().unapply(config, dry_run=dry_run)
    response = result.to_dict()
    if result.external_commands:
        response["warnings"] = [
            f"{result.external_commands} external commands cannot be reverted automatically"
        ]
    return _json(response)


async def handle_reset(dry_run: bool) -> list[TextContent]:
    """Delete every configured key."""
    config = load_config(_config_path())
    result = await get_engine().reset(config, dry_run=dry_run)
    return _json(result.to_dict())


async def handle_exec(name: Optional[str], mode: str, dry_run: bool) -> list[TextContent]:
    """Run external commands."""
    config = load_config(_config_path())
    runner = ExternalRunner()
    if name:
        command = await runner.run_one(config, name, dry_run=dry_run)
        executed = [command]
    else:
        executed = await runner.run_all(config, ExecMode(mode), dry_run=dry_run)
    return _json({
        "success": True,
        "dry_run": dry_run,
        "executed": [c.name for c in executed],
    })


async def handle_recent_changes(domain: Optional[str], limit: int) -> list[TextContent]:
    """Read back the audit trail."""
    records = get_recent_changes(domain=domain, limit=limit)
    return _json({
        "success": True,
        "count": len(records),
        "changes": [asdict(r) for r in records],
    })


def main():
    """Run the MCP server."""
    setup_audit_logging()
    setup_logging()

    async def run():
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options()
            )

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
