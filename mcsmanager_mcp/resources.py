"""Read-only MCP resources mirroring the panel's main views."""

from __future__ import annotations

import logging

from fastmcp import FastMCP
from fastmcp.exceptions import ResourceError

from .client import PanelClient
from .projections import project_instances, project_overview, project_users, to_text
from .utils import ensure_ok, error_message

logger = logging.getLogger(__name__)

JSON_MIME = "application/json"


def _resource_error(doing: str, exc: Exception) -> ResourceError:
    message = error_message(doing, exc)
    logger.warning("%s", message)
    return ResourceError(message)


def register_resources(mcp: FastMCP, panel: PanelClient) -> None:
    """Register the mcsm:// resources with the MCP server."""

    @mcp.resource("mcsm://overview", name="overview", mime_type=JSON_MIME)
    async def overview() -> str:
        """Panel overview: version, host system and every daemon."""
        try:
            resp = ensure_ok(await panel.get_overview(), "get overview")
            return to_text(project_overview(resp.data or {}))
        except Exception as e:
            raise _resource_error("fetching overview", e) from e

    @mcp.resource("mcsm://daemons", name="daemons", mime_type=JSON_MIME)
    async def daemons() -> str:
        """Remote daemons as reported by the panel's service list."""
        try:
            resp = ensure_ok(await panel.get_daemons(), "get daemons")
            return to_text(resp.data)
        except Exception as e:
            raise _resource_error("fetching daemons", e) from e

    @mcp.resource("mcsm://users", name="users", mime_type=JSON_MIME)
    async def users() -> str:
        """First page of panel users."""
        try:
            resp = ensure_ok(await panel.get_users(), "get users")
            return to_text(project_users(resp.data or {}))
        except Exception as e:
            raise _resource_error("fetching users", e) from e

    @mcp.resource("mcsm://daemons/{daemon_id}/instances", name="daemon-instances", mime_type=JSON_MIME)
    async def daemon_instances(daemon_id: str) -> str:
        """Instances hosted by one daemon."""
        try:
            resp = ensure_ok(await panel.get_instances(daemon_id), "get instances")
            return to_text(project_instances(resp.data or {}))
        except Exception as e:
            raise _resource_error("fetching instances", e) from e
