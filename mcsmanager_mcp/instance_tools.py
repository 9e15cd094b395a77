"""MCP tool definitions for daemons, instances and the panel overview.

These tools read panel and daemon state and drive the instance lifecycle
(start, stop, restart, kill, console commands). Each tool makes exactly one
panel request.
"""

from __future__ import annotations

from typing import Annotated

from fastmcp import FastMCP
from pydantic import Field

from .client import PanelClient
from .projections import (
    project_daemons,
    project_instance_detail,
    project_instances,
    project_overview,
    to_text,
)
from .utils import DaemonId, InstanceId, ensure_ok, tool_error


def register_instance_tools(mcp: FastMCP, panel: PanelClient) -> None:
    """Register daemon, instance and overview tools with the MCP server."""

    # --- Read-only ---

    @mcp.tool(name="get-daemons")
    async def get_daemons() -> str:
        """List every daemon connected to the panel.

        Returns each daemon's id, name, version, online/offline status,
        running/total instance counts and basic system load.
        """
        try:
            resp = ensure_ok(await panel.get_overview(), "get daemons")
            return to_text(project_daemons(resp.data or {}))
        except Exception as e:
            raise tool_error("fetching daemons", e) from e

    @mcp.tool(name="get-instances")
    async def get_instances(daemonId: DaemonId) -> str:
        """List the instances hosted by a daemon, with their current status."""
        try:
            resp = ensure_ok(await panel.get_instances(daemonId), "get instances")
            return to_text(project_instances(resp.data or {}))
        except Exception as e:
            raise tool_error("fetching instances", e) from e

    @mcp.tool(name="get-instance-detail")
    async def get_instance_detail(daemonId: DaemonId, instanceId: InstanceId) -> str:
        """Get the full configuration and process info of one instance."""
        try:
            resp = ensure_ok(
                await panel.get_instance_detail(instanceId, daemonId), "get instance details"
            )
            return to_text(project_instance_detail(resp.data or {}))
        except Exception as e:
            raise tool_error("fetching instance details", e) from e

    @mcp.tool(name="get-overview")
    async def get_overview() -> str:
        """Get the panel overview: panel version, host system, request records and all daemons."""
        try:
            resp = ensure_ok(await panel.get_overview(), "get overview")
            return to_text(project_overview(resp.data or {}))
        except Exception as e:
            raise tool_error("fetching overview", e) from e

    # --- Lifecycle ---

    @mcp.tool(name="start-instance")
    async def start_instance(daemonId: DaemonId, instanceId: InstanceId) -> str:
        """Start a stopped instance."""
        try:
            ensure_ok(await panel.start_instance(instanceId, daemonId), "start instance")
        except Exception as e:
            raise tool_error("starting instance", e) from e
        return f"Successfully started instance {instanceId}"

    @mcp.tool(name="stop-instance")
    async def stop_instance(daemonId: DaemonId, instanceId: InstanceId) -> str:
        """Stop an instance gracefully using its configured stop command."""
        try:
            ensure_ok(await panel.stop_instance(instanceId, daemonId), "stop instance")
        except Exception as e:
            raise tool_error("stopping instance", e) from e
        return f"Successfully stopped instance {instanceId}"

    @mcp.tool(name="restart-instance")
    async def restart_instance(daemonId: DaemonId, instanceId: InstanceId) -> str:
        """Restart an instance."""
        try:
            ensure_ok(await panel.restart_instance(instanceId, daemonId), "restart instance")
        except Exception as e:
            raise tool_error("restarting instance", e) from e
        return f"Successfully restarted instance {instanceId}"

    @mcp.tool(name="kill-instance")
    async def kill_instance(daemonId: DaemonId, instanceId: InstanceId) -> str:
        """Force-kill an instance's process. Unsaved world data may be lost."""
        try:
            ensure_ok(await panel.kill_instance(instanceId, daemonId), "kill instance")
        except Exception as e:
            raise tool_error("killing instance", e) from e
        return f"Successfully killed instance {instanceId}"

    @mcp.tool(name="send-command")
    async def send_command(
        daemonId: DaemonId,
        instanceId: InstanceId,
        command: Annotated[str, Field(description="Command to send")],
    ) -> str:
        """Send a line of input to a running instance's console (e.g. 'say hello', 'list')."""
        try:
            ensure_ok(await panel.send_command(instanceId, daemonId, command), "send command")
        except Exception as e:
            raise tool_error("sending command", e) from e
        return f'Successfully sent command "{command}" to instance {instanceId}'
