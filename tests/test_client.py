from __future__ import annotations

import httpx
import pytest

from mcsmanager_mcp.client import PanelClient, PanelResponse

from .conftest import API_KEY, PanelStub


@pytest.mark.asyncio
async def test_every_call_carries_api_key(stub: PanelStub, panel: PanelClient) -> None:
    """The credential is sent as the apikey query parameter on every request."""
    stub.reply("GET", "/api/overview", {})
    stub.reply("POST", "/api/instance/multi_start", {})
    stub.reply("PUT", "/api/files/", "")

    await panel.get_overview()
    await panel.start_instance("inst-1", "daemon-1")
    await panel.get_file_content("inst-1", "daemon-1", "a.txt")

    assert len(stub.requests) == 3
    for request in stub.requests:
        assert request.url.params["apikey"] == API_KEY
        assert request.headers["x-requested-with"] == "XMLHttpRequest"


@pytest.mark.asyncio
async def test_instance_action_posts_single_item_batch(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("POST", "/api/instance/multi_kill", {})
    resp = await panel.kill_instance("inst-1", "daemon-1")
    assert resp.ok
    assert stub.last_json() == [{"instanceUuid": "inst-1", "daemonId": "daemon-1"}]


@pytest.mark.asyncio
async def test_get_instances_query(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("GET", "/api/service/remote_service_instances", {"data": []})
    await panel.get_instances("daemon-1")
    params = stub.last.url.params
    assert params["daemonId"] == "daemon-1"
    assert params["page"] == "1"
    assert params["page_size"] == "10"
    assert params["tag"] == "[]"


@pytest.mark.asyncio
async def test_send_command_is_url_encoded(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("GET", "/api/protected_instance/command", {})
    await panel.send_command("inst-1", "daemon-1", "say hello & bye")
    assert stub.last.url.params["command"] == "say hello & bye"
    assert b"say+hello+%26+bye" in stub.last.url.query or b"say%20hello%20%26%20bye" in stub.last.url.query


@pytest.mark.asyncio
async def test_update_file_body(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("PUT", "/api/files/", True)
    await panel.update_file_content("inst-1", "daemon-1", "server.properties", "motd=hi")
    assert stub.last.url.params["uuid"] == "inst-1"
    assert stub.last_json() == {"target": "server.properties", "text": "motd=hi"}


@pytest.mark.asyncio
async def test_envelope_is_unwrapped(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("GET", "/api/overview", {"version": "10.2.1"})
    resp = await panel.get_overview()
    assert resp == PanelResponse(status=200, data={"version": "10.2.1"})


@pytest.mark.asyncio
async def test_http_error_status_is_returned_not_raised(stub: PanelStub, panel: PanelClient) -> None:
    stub.reply("POST", "/api/instance/multi_start", "boom", status=500, http_status=500)
    resp = await panel.start_instance("inst-1", "daemon-1")
    assert resp.status == 500
    assert not resp.ok


@pytest.mark.asyncio
async def test_non_json_error_body(make_panel) -> None:
    panel = make_panel(lambda request: httpx.Response(502, text="<html>Bad Gateway</html>"))
    resp = await panel.get_overview()
    assert resp.status == 502
    assert resp.data == "<html>Bad Gateway</html>"


@pytest.mark.asyncio
async def test_transport_errors_propagate(stub: PanelStub, panel: PanelClient) -> None:
    stub.fail("GET", "/api/overview", httpx.ConnectError("Connection refused"))
    with pytest.raises(httpx.ConnectError):
        await panel.get_overview()
    assert len(stub.requests) == 1


@pytest.mark.asyncio
async def test_aclose_is_idempotent(panel: PanelClient) -> None:
    await panel.aclose()
    await panel.aclose()
