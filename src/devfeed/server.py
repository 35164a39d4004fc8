"""devfeed MCP server: on-demand refresh, retention sweep, and status tools."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .broadcast import ALL_CHANNEL, channel_for
from .config import get_db_path, load_config
from .db import FeedDB
from .scanner import Scanner

logger = logging.getLogger(__name__)


def create_server(config: dict | None = None) -> tuple[Server, dict]:
    """Create and configure the MCP server with all tools."""
    if config is None:
        config = load_config()

    server = Server("devfeed")

    db = FeedDB(get_db_path(config))
    db.connect()
    scanner = Scanner.from_config(config, db)
    scanner.sync_sources()
    ctx = {"db": db, "scanner": scanner, "config": config}

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return [
            Tool(
                name="devfeed_refresh",
                description="Fetch new posts for one source, one provider, or every active source.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "source_id": {
                            "type": "integer",
                            "description": "Run only this source, even if inactive.",
                        },
                        "provider": {
                            "type": "string",
                            "description": "Run only active sources of this provider.",
                        },
                    },
                },
            ),
            Tool(
                name="devfeed_sweep",
                description="Delete posts older than the largest configured retention window.",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="devfeed_status",
                description="Source statuses, post counts, and recent status events.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "source_id": {
                            "type": "integer",
                            "description": "Show events for this source only.",
                        },
                        "limit": {"type": "integer", "default": 20},
                    },
                },
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        try:
            if name == "devfeed_refresh":
                result = await _handle_refresh(arguments)
            elif name == "devfeed_sweep":
                result = await _handle_sweep(arguments)
            elif name == "devfeed_status":
                result = await _handle_status(arguments)
            else:
                result = {"error": f"Unknown tool: {name}"}
        except LookupError as e:
            result = {"error": str(e)}
        except Exception as e:
            logger.exception("Tool %s failed", name)
            result = {"error": f"{type(e).__name__}: {e}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    # ── Tool handlers ───────────────────────────────────────────────

    async def _handle_refresh(args: dict) -> dict:
        return await scanner.run(
            source_id=args.get("source_id"), provider=args.get("provider")
        )

    async def _handle_sweep(args: dict) -> dict:
        return {"deleted": scanner.sweep()}

    async def _handle_status(args: dict) -> dict:
        source_id = args.get("source_id")
        limit = args.get("limit", 20)
        channel = channel_for(source_id) if source_id is not None else ALL_CHANNEL
        return {
            "sources": [
                {
                    "id": s.id,
                    "name": s.name,
                    "provider": s.provider,
                    "status": s.status,
                    "active": s.active,
                    "auto_fetch_enabled": s.auto_fetch_enabled,
                    "last_fetched_at": s.last_fetched_at,
                }
                for s in db.list_sources()
            ],
            "posts": db.get_stats(),
            "events": [e.to_dict() for e in scanner.broadcaster.recent(channel, limit)],
        }

    return server, ctx


async def run_server() -> None:
    """Run the MCP server on stdio."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    server, ctx = create_server()
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        ctx["db"].close()


def main() -> None:
    """Entry point for devfeed-mcp command."""
    asyncio.run(run_server())
