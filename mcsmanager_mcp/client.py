"""HTTP client for the MCSManager panel REST API.

Every call carries the panel API key as the ``apikey`` query parameter. There
are no retries: one tool call is one request, and transport failures
(connection refused, timeouts) propagate to the tool so it can report them.
HTTP error statuses are not raised; they come back as ``PanelResponse.status``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Content-Type": "application/json; charset=utf-8",
    "X-Requested-With": "XMLHttpRequest",
}


@dataclass
class PanelResponse:
    """Decoded panel reply: the envelope ``status`` and its ``data`` payload."""

    status: int
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.status == 200


def _decode(resp: httpx.Response) -> PanelResponse:
    try:
        body: Any = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = resp.text

    if resp.is_error:
        return PanelResponse(status=resp.status_code, data=body)
    if isinstance(body, dict) and isinstance(body.get("status"), int):
        return PanelResponse(status=body["status"], data=body.get("data"))
    return PanelResponse(status=resp.status_code, data=body)


class PanelClient:
    """Async client for one MCSManager panel.

    Keeps a persistent httpx.AsyncClient so consecutive tool calls reuse the
    connection pool. The base URL and API key are fixed at construction.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the persistent HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=DEFAULT_HEADERS,
                params={"apikey": self._api_key},
                transport=self._transport,
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> PanelResponse:
        client = self._get_client()
        logger.debug("%s %s params=%s", method, path, params)
        try:
            resp = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException:
            raise httpx.TimeoutException(
                f"MCSManager did not respond within {self.timeout}s on {method} {path}"
            )
        result = _decode(resp)
        if not result.ok:
            logger.warning("%s %s returned status %s", method, path, result.status)
        return result

    async def aclose(self) -> None:
        """Close the underlying HTTP client, if one was opened."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # --- Daemons & overview ---

    async def get_daemons(self) -> PanelResponse:
        """List remote daemons with their system information."""
        return await self._request("GET", "/api/service/remote_services_system")

    async def get_overview(self) -> PanelResponse:
        """Fetch the panel overview (panel system info plus every daemon)."""
        return await self._request("GET", "/api/overview")

    async def get_users(self, page: int = 1, page_size: int = 20) -> PanelResponse:
        return await self._request(
            "GET", "/api/auth/list", params={"page": page, "page_size": page_size}
        )

    # --- Instances ---

    async def get_instances(self, daemon_id: str, page: int = 1, page_size: int = 10) -> PanelResponse:
        """List instances hosted by one daemon (first page only by default)."""
        return await self._request(
            "GET",
            "/api/service/remote_service_instances",
            params={
                "daemonId": daemon_id,
                "page": page,
                "page_size": page_size,
                "instance_name": "",
                "status": "",
                "tag": "[]",
            },
        )

    async def get_instance_detail(self, instance_uuid: str, daemon_id: str) -> PanelResponse:
        return await self._request(
            "GET", "/api/instance", params={"uuid": instance_uuid, "daemonId": daemon_id}
        )

    async def _instance_action(self, action: str, instance_uuid: str, daemon_id: str) -> PanelResponse:
        # The panel's batch endpoints take a list; we always send exactly one item.
        return await self._request(
            "POST",
            f"/api/instance/{action}",
            json=[{"instanceUuid": instance_uuid, "daemonId": daemon_id}],
        )

    async def start_instance(self, instance_uuid: str, daemon_id: str) -> PanelResponse:
        return await self._instance_action("multi_start", instance_uuid, daemon_id)

    async def stop_instance(self, instance_uuid: str, daemon_id: str) -> PanelResponse:
        return await self._instance_action("multi_stop", instance_uuid, daemon_id)

    async def restart_instance(self, instance_uuid: str, daemon_id: str) -> PanelResponse:
        return await self._instance_action("multi_restart", instance_uuid, daemon_id)

    async def kill_instance(self, instance_uuid: str, daemon_id: str) -> PanelResponse:
        return await self._instance_action("multi_kill", instance_uuid, daemon_id)

    async def send_command(self, instance_uuid: str, daemon_id: str, command: str) -> PanelResponse:
        """Write one line to the instance's console."""
        return await self._request(
            "GET",
            "/api/protected_instance/command",
            params={"uuid": instance_uuid, "daemonId": daemon_id, "command": command},
        )

    # --- Files ---

    async def get_file_list(
        self,
        instance_uuid: str,
        daemon_id: str,
        target: str = "",
        page: int = 0,
        page_size: int = 100,
    ) -> PanelResponse:
        """List one directory of the instance's working directory."""
        return await self._request(
            "GET",
            "/api/files/list",
            params={
                "uuid": instance_uuid,
                "daemonId": daemon_id,
                "target": target,
                "page": page,
                "page_size": page_size,
            },
        )

    async def get_file_content(self, instance_uuid: str, daemon_id: str, target: str) -> PanelResponse:
        """Read a file. The panel uses PUT without ``text`` for reads."""
        return await self._request(
            "PUT",
            "/api/files/",
            params={"uuid": instance_uuid, "daemonId": daemon_id},
            json={"target": target},
        )

    async def update_file_content(
        self, instance_uuid: str, daemon_id: str, target: str, text: str
    ) -> PanelResponse:
        return await self._request(
            "PUT",
            "/api/files/",
            params={"uuid": instance_uuid, "daemonId": daemon_id},
            json={"target": target, "text": text},
        )
