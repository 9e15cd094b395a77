"""MCP tool definitions for instance files.

Paths are relative to the instance's working directory on its daemon.
"""

from __future__ import annotations

from typing import Annotated

from fastmcp import FastMCP
from pydantic import Field

from .client import PanelClient
from .projections import project_files, to_text
from .utils import DaemonId, InstanceId, ensure_ok, tool_error

FilePath = Annotated[str, Field(description="File path")]


def register_file_tools(mcp: FastMCP, panel: PanelClient) -> None:
    """Register file listing, reading and writing tools with the MCP server."""

    @mcp.tool(name="get-files")
    async def get_files(
        daemonId: DaemonId,
        instanceId: InstanceId,
        path: Annotated[str | None, Field(description="Directory path, optional")] = None,
    ) -> str:
        """List a directory of an instance. Omit path for the instance root.

        Each entry has name, size, time, mode and type ('directory' or 'file').
        """
        target = path or ""
        try:
            resp = ensure_ok(await panel.get_file_list(instanceId, daemonId, target), "get file list")
            return to_text(project_files(resp.data or {}))
        except Exception as e:
            raise tool_error("fetching files", e) from e

    @mcp.tool(name="get-file-content")
    async def get_file_content(daemonId: DaemonId, instanceId: InstanceId, filePath: FilePath) -> str:
        """Read a text file from an instance (e.g. 'server.properties')."""
        try:
            if not filePath:
                raise ValueError("File path is required")
            resp = ensure_ok(
                await panel.get_file_content(instanceId, daemonId, filePath), "get file content"
            )
        except Exception as e:
            raise tool_error("fetching file content", e) from e
        if isinstance(resp.data, str):
            return resp.data
        return to_text(resp.data)

    @mcp.tool(name="update-file")
    async def update_file(
        daemonId: DaemonId,
        instanceId: InstanceId,
        filePath: FilePath,
        content: Annotated[str, Field(description="File content")],
    ) -> str:
        """Overwrite a text file on an instance with *content*."""
        try:
            ensure_ok(
                await panel.update_file_content(instanceId, daemonId, filePath, content), "update file"
            )
        except Exception as e:
            raise tool_error("updating file", e) from e
        return f"Successfully updated file {filePath}"
