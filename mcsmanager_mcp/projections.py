"""Reshape raw MCSManager payloads into the smaller views returned by tools.

Every function here is pure: it takes the ``data`` part of a panel reply and
returns plain JSON-serialisable structures. Missing keys come back as None
rather than raising, since panel versions differ in which fields they send.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

# Instance status codes as reported by the daemon.
STATUS_LABELS: dict[int, str] = {
    -1: "busy",
    0: "stopped",
    1: "stopping",
    2: "starting",
    3: "running",
}

# File list entries use type 0 for directories, 1 for regular files.
DIRECTORY_TYPE = 0

_PANEL_SYSTEM_FIELDS = (
    "user", "time", "totalmem", "freemem", "type", "version", "node",
    "hostname", "loadavg", "platform", "release", "uptime", "cpu",
)

_DAEMON_SYSTEM_FIELDS = (
    "type", "hostname", "platform", "release", "uptime", "cwd", "loadavg",
    "freemem", "cpuUsage", "memUsage", "totalmem", "processCpu", "processMem",
)

_DAEMON_FIELDS = ("uuid", "ip", "port", "prefix", "available", "remarks")


def status_text(status: Any) -> str:
    """Return the label for an instance status code, or ``"unknown"``."""
    try:
        return STATUS_LABELS.get(int(status), "unknown")
    except (TypeError, ValueError):
        return "unknown"


def iso_timestamp(value: Any) -> str | None:
    """Render an epoch-milliseconds timestamp as ISO-8601 UTC (``...000Z``)."""
    if value is None or value == "":
        return None
    try:
        millis = float(value)
    except (TypeError, ValueError):
        return None
    dt = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_text(payload: Any) -> str:
    """Serialise a projection the way tools return it."""
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _pick(source: dict[str, Any] | None, fields: tuple[str, ...]) -> dict[str, Any]:
    source = source or {}
    return {name: source.get(name) for name in fields}


def project_daemons(overview: dict[str, Any]) -> list[dict[str, Any]]:
    """Summarise each daemon listed in the overview's ``remote`` array."""
    daemons = []
    for daemon in overview.get("remote") or []:
        instance = daemon.get("instance") or {}
        system = daemon.get("system") or {}
        daemons.append({
            "id": daemon.get("uuid"),
            "name": daemon.get("remarks"),
            "version": daemon.get("version"),
            "status": "online" if daemon.get("available") else "offline",
            "instances": {
                "running": instance.get("running"),
                "total": instance.get("total"),
            },
            "system": _pick(system, ("type", "platform", "hostname", "cpuUsage", "memUsage")),
        })
    return daemons


def project_instance(instance: dict[str, Any]) -> dict[str, Any]:
    """Summary view of one instance, as used in instance listings."""
    config = instance.get("config") or {}
    return {
        "id": instance.get("instanceUuid"),
        "name": config.get("nickname"),
        "status": status_text(instance.get("status")),
        "type": config.get("type"),
        "startCommand": config.get("startCommand"),
        "stopCommand": config.get("stopCommand"),
        "cwd": config.get("cwd"),
        "processInfo": instance.get("processInfo"),
        "created": iso_timestamp(config.get("createDatetime")),
    }


def project_instances(page: dict[str, Any]) -> list[dict[str, Any]]:
    """Project a paged instance listing (instances live under ``data``)."""
    return [project_instance(item) for item in page.get("data") or []]


def project_instance_detail(instance: dict[str, Any]) -> dict[str, Any]:
    config = instance.get("config") or {}
    detail = project_instance(instance)
    detail.update({
        "lastModified": iso_timestamp(config.get("lastDatetime")),
        "fileEncoding": config.get("fileCode"),
        "processType": config.get("processType"),
        "info": instance.get("info"),
    })
    return detail


def project_files(listing: dict[str, Any]) -> dict[str, Any]:
    """Project a directory listing; ``type`` becomes ``directory`` or ``file``."""
    return {
        "path": listing.get("absolutePath"),
        "files": [
            {
                "name": item.get("name"),
                "size": item.get("size"),
                "time": item.get("time"),
                "type": "directory" if item.get("type") == DIRECTORY_TYPE else "file",
                "mode": item.get("mode"),
            }
            for item in listing.get("items") or []
        ],
    }


def project_overview(overview: dict[str, Any]) -> dict[str, Any]:
    remote_count = overview.get("remoteCount") or {}
    return {
        "version": overview.get("version"),
        "specifiedDaemonVersion": overview.get("specifiedDaemonVersion"),
        "process": overview.get("process"),
        "record": overview.get("record"),
        "system": _pick(overview.get("system"), _PANEL_SYSTEM_FIELDS),
        "remoteCount": {
            "available": remote_count.get("available"),
            "total": remote_count.get("total"),
        },
        "remote": [
            {
                "version": daemon.get("version"),
                "process": daemon.get("process"),
                "instance": daemon.get("instance"),
                "system": _pick(daemon.get("system"), _DAEMON_SYSTEM_FIELDS),
                **_pick(daemon, _DAEMON_FIELDS),
            }
            for daemon in overview.get("remote") or []
        ],
    }


def project_users(page: dict[str, Any]) -> dict[str, Any]:
    """Project the panel's user listing without password or API-key fields."""
    return {
        "total": page.get("total"),
        "page": page.get("page"),
        "pageSize": page.get("pageSize"),
        "users": [
            {
                "uuid": user.get("uuid"),
                "userName": user.get("userName"),
                "permission": user.get("permission"),
                "registerTime": user.get("registerTime"),
                "loginTime": user.get("loginTime"),
            }
            for user in page.get("data") or []
        ],
    }
