"""Streamable HTTP session transport backed by the MCP SDK."""

from __future__ import annotations

import logging

import anyio
from anyio.abc import TaskStatus
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import StreamableHTTPServerTransport
from starlette.types import Receive, Scope, Send

logger = logging.getLogger(__name__)


class StreamableSessionTransport:
    """One MCP session: an SDK streamable HTTP transport plus its server loop.

    The server loop runs for as long as the transport's streams are open. A
    DELETE request, a client disconnect or ``terminate()`` closes the streams,
    which ends ``run()`` and tells the router to drop the session.
    """

    def __init__(self, session_id: str, server: Server, json_response: bool = False) -> None:
        self.session_id = session_id
        self._server = server
        self._http = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=json_response,
        )

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._http.handle_request(scope, receive, send)

    async def run(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        async with self._http.connect() as (read_stream, write_stream):
            task_status.started()
            await self._server.run(
                read_stream,
                write_stream,
                self._server.create_initialization_options(),
                stateless=False,
            )
        logger.debug("Server loop for session %s finished", self.session_id)

    async def terminate(self) -> None:
        if not self._http.is_terminated:
            await self._http.terminate()
