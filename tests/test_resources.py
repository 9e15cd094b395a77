from __future__ import annotations

import json

import pytest
from fastmcp import Client

from mcsmanager_mcp.client import PanelClient
from mcsmanager_mcp.server import create_mcp

from .conftest import PanelStub


async def read(panel: PanelClient, uri: str):
    async with Client(create_mcp(panel)) as client:
        contents = await client.read_resource(uri)
    return json.loads(contents[0].text)


@pytest.mark.asyncio
async def test_resources_are_listed(panel: PanelClient) -> None:
    async with Client(create_mcp(panel)) as client:
        resources = await client.list_resources()
        templates = await client.list_resource_templates()
    assert {str(r.uri).rstrip("/") for r in resources} == {"mcsm://overview", "mcsm://daemons", "mcsm://users"}
    assert [t.uriTemplate for t in templates] == ["mcsm://daemons/{daemon_id}/instances"]


@pytest.mark.asyncio
async def test_overview_resource(stub: PanelStub, panel: PanelClient, overview_data) -> None:
    stub.reply("GET", "/api/overview", overview_data)
    overview = await read(panel, "mcsm://overview")
    assert overview["remoteCount"] == {"available": 1, "total": 2}


@pytest.mark.asyncio
async def test_daemons_resource(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("GET", "/api/service/remote_services_system", [{"uuid": "daemon-1", "available": True}])
    daemons = await read(panel, "mcsm://daemons")
    assert daemons == [{"uuid": "daemon-1", "available": True}]


@pytest.mark.asyncio
async def test_users_resource(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("GET", "/api/auth/list", {"total": 0, "page": 1, "pageSize": 20, "data": []})
    users = await read(panel, "mcsm://users")
    assert users == {"total": 0, "page": 1, "pageSize": 20, "users": []}
    assert stub.last.url.params["page_size"] == "20"


@pytest.mark.asyncio
async def test_daemon_instances_template(stub: PanelStub, panel: PanelClient, instance_data) -> None:
    stub.reply("GET", "/api/service/remote_service_instances", {"data": [instance_data]})
    [instance] = await read(panel, "mcsm://daemons/daemon-1/instances")
    assert instance["name"] == "Survival"
    assert stub.last.url.params["daemonId"] == "daemon-1"


@pytest.mark.asyncio
async def test_resource_error(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("GET", "/api/overview", "denied", status=403, http_status=403)
    with pytest.raises(Exception, match="403"):
        await read(panel, "mcsm://overview")


@pytest.mark.asyncio
async def test_resource_unexpected_payload_shape(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("GET", "/api/auth/list", ["not", "a", "page"])
    with pytest.raises(Exception, match="Error fetching users"):
        await read(panel, "mcsm://users")
