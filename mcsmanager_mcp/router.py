"""Session-multiplexed routing for the streamable HTTP MCP endpoint.

One HTTP path serves every caller. Each caller gets its own MCP session,
identified by the ``mcp-session-id`` header, with a transport that keeps the
protocol state (handshake, open streams) across HTTP requests:

* ``POST`` with a known session id is routed to that session's transport.
  ``POST`` without a session id creates a new session, but only when the body
  is an ``initialize`` request, and keeps it only if the transport accepts
  that request. Anything else is rejected with a JSON-RPC error and creates
  no state.
* ``GET`` and ``DELETE`` need a known session id; ``DELETE`` ends the session.

The session table is only mutated between awaits, so it needs no lock under
the cooperative scheduler.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Protocol
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.types import Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"

NO_VALID_SESSION_ERROR = {
    "jsonrpc": "2.0",
    "error": {
        "code": -32000,
        "message": "Bad Request: No valid session ID provided",
    },
    "id": None,
}
INVALID_SESSION_TEXT = "Invalid or missing session ID"
ALLOWED_METHODS = "GET, POST, DELETE"


class SessionTransport(Protocol):
    """Per-session protocol transport owned by the router."""

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Answer one HTTP exchange that belongs to this session."""

    async def run(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        """Serve the session until the transport closes.

        Must call ``task_status.started()`` once it can accept requests.
        Returning, for any reason, is the session's close signal.
        """

    async def terminate(self) -> None:
        """Close the transport. Safe to call more than once."""


TransportFactory = Callable[[str], SessionTransport]


@dataclass
class Session:
    session_id: str
    transport: SessionTransport
    last_seen: float = field(default_factory=time.monotonic)
    active_requests: int = 0


def is_initialize_request(body: bytes) -> bool:
    """Return True if *body* decodes to a JSON-RPC ``initialize`` request."""
    try:
        message = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return False
    return isinstance(message, dict) and message.get("method") == "initialize"


def _replay_receive(body: bytes, receive: Receive) -> Receive:
    """Return a receive callable that yields *body* again, then defers to *receive*."""
    replayed = False

    async def replay() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


def is_error_reply(status: int, body: bytes) -> bool:
    """Return True if a transport reply is an HTTP error or carries a JSON-RPC error.

    *body* is either one JSON document or an SSE stream of ``data:`` lines.
    """
    if not 200 <= status < 300:
        return True
    if body.lstrip().startswith((b"{", b"[")):
        payloads = [body]
    else:
        payloads = [line[5:] for line in body.splitlines() if line.startswith(b"data:")]
    for payload in payloads:
        try:
            message = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError):
            continue
        if isinstance(message, dict) and "error" in message:
            return True
    return False


def _recording_send(send: Send, reply: dict) -> Send:
    """Return a send callable that forwards to *send* and records the status and body in *reply*."""

    async def record(message: Message) -> None:
        if message["type"] == "http.response.start":
            reply["status"] = message["status"]
        elif message["type"] == "http.response.body":
            reply["body"] += message.get("body", b"")
        await send(message)

    return record


class SessionRouter:
    """ASGI app that maps requests on one path onto per-session transports.

    The router must be running (``async with router.run():``) before it
    serves requests; session transports run as tasks in its task group.
    """

    def __init__(
        self,
        transport_factory: TransportFactory,
        idle_timeout: float = 0.0,
        sweep_interval: float = 60.0,
    ) -> None:
        self._transport_factory = transport_factory
        self._idle_timeout = idle_timeout
        self._sweep_interval = sweep_interval
        self._sessions: dict[str, Session] = {}
        self._task_group: TaskGroup | None = None

    # --- Introspection ---

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    # --- Lifecycle ---

    @asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """Run the router's task group; terminate all sessions on exit."""
        if self._task_group is not None:
            raise RuntimeError("SessionRouter is already running")
        async with anyio.create_task_group() as tg:
            self._task_group = tg
            if self._idle_timeout > 0:
                tg.start_soon(self._reap_idle_forever)
                logger.info(
                    "Idle session reaper enabled (timeout=%ss, interval=%ss)",
                    self._idle_timeout, self._sweep_interval,
                )
            try:
                yield
            finally:
                with anyio.CancelScope(shield=True):
                    for session in list(self._sessions.values()):
                        await session.transport.terminate()
                self._sessions.clear()
                tg.cancel_scope.cancel()
                self._task_group = None

    def remove_session(self, session_id: str) -> bool:
        """Drop *session_id* from the table. Returns False if it was already gone."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        logger.info("Session %s closed (%d active)", session_id, len(self._sessions))
        return True

    async def _serve_session(
        self, session: Session, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED
    ) -> None:
        try:
            await session.transport.run(task_status=task_status)
        except Exception:
            logger.exception("Session %s crashed", session.session_id)
        finally:
            self.remove_session(session.session_id)

    async def _create_session(self) -> Session:
        if self._task_group is None:
            raise RuntimeError("SessionRouter is not running; use 'async with router.run()'")
        session_id = uuid4().hex
        while session_id in self._sessions:
            session_id = uuid4().hex
        session = Session(session_id=session_id, transport=self._transport_factory(session_id))
        self._sessions[session_id] = session
        logger.info("Session %s created (%d active)", session_id, len(self._sessions))
        await self._task_group.start(self._serve_session, session)
        return session

    # --- Idle reaping ---

    async def reap_idle(self, now: float | None = None) -> list[str]:
        """Terminate sessions idle for longer than the timeout; return their ids.

        Sessions with a request in flight (such as an open GET stream) are
        never considered idle.
        """
        if self._idle_timeout <= 0:
            return []
        now = time.monotonic() if now is None else now
        stale = [
            s for s in self._sessions.values()
            if s.active_requests == 0 and now - s.last_seen > self._idle_timeout
        ]
        for session in stale:
            logger.info("Session %s idle for %.0fs, terminating", session.session_id, now - session.last_seen)
            await session.transport.terminate()
            self.remove_session(session.session_id)
        return [s.session_id for s in stale]

    async def _reap_idle_forever(self) -> None:
        while True:
            await anyio.sleep(self._sweep_interval)
            await self.reap_idle()

    # --- Routing ---

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.handle_request(scope, receive, send)

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        if self._task_group is None:
            raise RuntimeError("SessionRouter is not running; use 'async with router.run()'")
        request = Request(scope, receive)
        if request.method == "POST":
            await self._handle_post(request, scope, receive, send)
        elif request.method in ("GET", "DELETE"):
            await self._handle_existing(request, scope, receive, send)
        else:
            response: Response = PlainTextResponse(
                "Method Not Allowed", status_code=405, headers={"Allow": ALLOWED_METHODS}
            )
            await response(scope, receive, send)

    async def _handle_post(self, request: Request, scope: Scope, receive: Receive, send: Send) -> None:
        body = await request.body()
        replay = _replay_receive(body, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)

        if session_id:
            session = self._sessions.get(session_id)
        elif is_initialize_request(body):
            await self._initialize_session(scope, replay, send)
            return
        else:
            session = None

        if session is None:
            logger.debug("Rejected POST without a valid session (header=%r)", session_id)
            response = JSONResponse(NO_VALID_SESSION_ERROR, status_code=400)
            await response(scope, receive, send)
            return
        await self._route(session, scope, replay, send)

    async def _initialize_session(self, scope: Scope, receive: Receive, send: Send) -> None:
        # A session only stays in the table once its transport has accepted
        # the initialize request.
        session = await self._create_session()
        reply = {"status": 0, "body": b""}
        try:
            await self._route(session, scope, receive, _recording_send(send, reply))
        finally:
            if is_error_reply(reply["status"], reply["body"]):
                logger.info("Session %s rejected its initialize (HTTP %s)", session.session_id, reply["status"])
                with anyio.CancelScope(shield=True):
                    await session.transport.terminate()
                self.remove_session(session.session_id)

    async def _handle_existing(self, request: Request, scope: Scope, receive: Receive, send: Send) -> None:
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        session = self._sessions.get(session_id) if session_id else None
        if session is None:
            logger.debug("Rejected %s with invalid session (header=%r)", request.method, session_id)
            response = PlainTextResponse(INVALID_SESSION_TEXT, status_code=400)
            await response(scope, receive, send)
            return
        await self._route(session, scope, receive, send)

    async def _route(self, session: Session, scope: Scope, receive: Receive, send: Send) -> None:
        session.active_requests += 1
        try:
            await session.transport.handle_request(scope, receive, send)
        finally:
            session.active_requests -= 1
            session.last_seen = time.monotonic()
