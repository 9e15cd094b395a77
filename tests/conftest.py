from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from mcsmanager_mcp.client import PanelClient

PANEL_URL = "http://panel.test"
API_KEY = "test-api-key"


def envelope(data: Any, status: int = 200) -> dict[str, Any]:
    """Wrap *data* the way the panel wraps every reply."""
    return {"status": status, "data": data, "time": 1700000000000}


class PanelStub:
    """Records requests and answers them from a path -> response table."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], httpx.Response | Exception] = {}

    def reply(self, method: str, path: str, data: Any = None, status: int = 200, http_status: int = 200) -> None:
        self.routes[(method, path)] = httpx.Response(http_status, json=envelope(data, status))

    def fail(self, method: str, path: str, exc: Exception) -> None:
        self.routes[(method, path)] = exc

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        answer = self.routes.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(404, json={"status": 404, "data": "not found"})
        if isinstance(answer, Exception):
            raise answer
        return answer

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


@pytest.fixture
def stub() -> PanelStub:
    return PanelStub()


@pytest.fixture
def make_panel() -> Callable[[PanelStub], PanelClient]:
    def _make(handler: PanelStub) -> PanelClient:
        return PanelClient(PANEL_URL, API_KEY, transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def panel(stub: PanelStub, make_panel) -> PanelClient:
    return make_panel(stub)


@pytest.fixture
def overview_data() -> dict[str, Any]:
    return {
        "version": "10.2.1",
        "specifiedDaemonVersion": "4.4.1",
        "process": {"cpu": 0, "memory": 123456, "cwd": "/opt/mcsmanager/web"},
        "record": {"logined": 3, "illegalAccess": 0, "banips": 0, "loginFailed": 1},
        "system": {
            "user": {"username": "mcsm"},
            "time": 1700000000000,
            "totalmem": 16000000000,
            "freemem": 8000000000,
            "type": "Linux",
            "version": "#1 SMP",
            "node": "v20.11.0",
            "hostname": "panel-host",
            "loadavg": [0.1, 0.2, 0.3],
            "platform": "linux",
            "release": "6.1.0",
            "uptime": 86400,
            "cpu": 0.05,
            "extra": "dropped",
        },
        "remoteCount": {"available": 1, "total": 2},
        "remote": [
            {
                "version": "4.4.1",
                "process": {"cpu": 0, "memory": 654321, "cwd": "/opt/mcsmanager/daemon"},
                "instance": {"running": 2, "total": 5},
                "system": {
                    "type": "Linux",
                    "hostname": "node-1",
                    "platform": "linux",
                    "release": "6.1.0",
                    "uptime": 3600,
                    "cwd": "/opt/mcsmanager/daemon",
                    "loadavg": [0.5, 0.4, 0.3],
                    "freemem": 4000000000,
                    "cpuUsage": 0.12,
                    "memUsage": 0.45,
                    "totalmem": 8000000000,
                    "processCpu": 0,
                    "processMem": 0,
                },
                "uuid": "daemon-1",
                "ip": "10.0.0.2",
                "port": 24444,
                "prefix": "",
                "available": True,
                "remarks": "Main node",
            },
            {
                "version": "4.3.0",
                "process": {},
                "instance": {"running": 0, "total": 0},
                "system": {"type": "Windows_NT", "hostname": "node-2", "platform": "win32"},
                "uuid": "daemon-2",
                "ip": "10.0.0.3",
                "port": 24444,
                "prefix": "",
                "available": False,
                "remarks": "Backup node",
            },
        ],
    }


@pytest.fixture
def instance_data() -> dict[str, Any]:
    return {
        "instanceUuid": "inst-1",
        "started": 4,
        "status": 3,
        "config": {
            "nickname": "Survival",
            "startCommand": "java -jar server.jar",
            "stopCommand": "stop",
            "cwd": "/data/survival",
            "type": "minecraft/java",
            "createDatetime": 1700000000000,
            "lastDatetime": 1700000123456,
            "fileCode": "utf-8",
            "processType": "general",
        },
        "info": {"currentPlayers": 2, "maxPlayers": 20, "version": "1.20.4"},
        "processInfo": {"cpu": 12.5, "memory": 2048000000, "pid": 4242},
    }


@pytest.fixture
def file_list_data() -> dict[str, Any]:
    return {
        "items": [
            {"name": "world", "size": 0, "time": "2024-01-01 10:00:00", "type": 0, "mode": 755},
            {"name": "server.properties", "size": 1200, "time": "2024-01-02 11:00:00", "type": 1, "mode": 644},
        ],
        "page": 0,
        "pageSize": 100,
        "total": 2,
        "absolutePath": "/data/survival",
    }
