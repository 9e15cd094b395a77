"""MCSManager MCP Server.

Exposes an MCSManager panel's REST API as MCP tools and resources over the
streamable HTTP transport, with one MCP session per connected client.

Run with: mcsmanager-mcp  (or: python -m mcsmanager_mcp)
Then configure the MCP client:
{
    "mcpServers": {
        "mcsmanager": {
            "url": "http://localhost:3000/mcp"
        }
    }
}
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastmcp import FastMCP
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from . import __version__
from .client import PanelClient
from .file_tools import register_file_tools
from .instance_tools import register_instance_tools
from .logging_config import setup_logging
from .resources import register_resources
from .router import SessionRouter, TransportFactory
from .settings import ConfigError, Settings, load_settings
from .transport import StreamableSessionTransport

logger = logging.getLogger(__name__)

INSTRUCTIONS = (
    "You have access to tools for managing game servers through an MCSManager panel. "
    "The panel controls one or more daemons (remote nodes); each daemon hosts instances "
    "(individual game server processes).\n\n"
    "Start with get-daemons to find daemon IDs, then get-instances(daemonId) to find "
    "instance IDs. Every instance tool needs both IDs.\n\n"
    "- start-instance / stop-instance / restart-instance change an instance's state. "
    "Prefer stop-instance over kill-instance; kill-instance does not let the server save.\n"
    "- send-command writes one line to the instance console.\n"
    "- get-files / get-file-content / update-file work on paths relative to the "
    "instance's working directory. Read a file before overwriting it.\n\n"
    "Instance status is one of: busy, stopped, stopping, starting, running, unknown."
)


def create_mcp(panel: PanelClient) -> FastMCP:
    """Build the FastMCP server with every tool and resource registered."""
    mcp = FastMCP("MCSManager MCP Server", version=__version__, instructions=INSTRUCTIONS)
    register_instance_tools(mcp, panel)
    register_file_tools(mcp, panel)
    register_resources(mcp, panel)
    return mcp


def create_app(
    settings: Settings,
    panel: PanelClient | None = None,
    transport_factory: TransportFactory | None = None,
) -> Starlette:
    """Build the ASGI app serving ``/mcp`` (session router) and ``/health``."""
    if panel is None:
        panel = PanelClient(
            settings.mcsmanager_url,
            settings.mcsmanager_api_key,
            timeout=settings.request_timeout_seconds,
        )
    mcp = create_mcp(panel)

    if transport_factory is None:
        def transport_factory(session_id: str) -> StreamableSessionTransport:
            return StreamableSessionTransport(
                session_id, mcp._mcp_server, json_response=settings.mcp_json_response
            )

    router = SessionRouter(
        transport_factory,
        idle_timeout=settings.session_idle_timeout_seconds,
        sweep_interval=settings.session_sweep_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Proxying MCSManager panel at %s", settings.mcsmanager_url)
        try:
            async with router.run():
                yield
        finally:
            logger.info("Shutting down...")
            await panel.aclose()

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "sessions": len(router)})

    app = Starlette(
        routes=[
            Route("/mcp", endpoint=router),
            Route("/health", endpoint=health, methods=["GET"]),
        ],
        lifespan=lifespan,
    )
    app.state.mcp = mcp
    app.state.router = router
    return app


def main() -> None:
    """Console entry point: load settings, then serve until interrupted."""
    try:
        settings = load_settings()
    except (ConfigError, ValidationError) as e:
        setup_logging().error("Error: %s", e)
        sys.exit(1)

    setup_logging(settings.log_level, settings.log_dir)
    app = create_app(settings)
    logger.info(
        "MCSManager MCP Server is running at http://%s:%s/mcp", settings.mcp_host, settings.mcp_port
    )
    uvicorn.run(app, host=settings.mcp_host, port=settings.mcp_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
