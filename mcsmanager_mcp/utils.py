"""Shared helpers for the tool and resource modules."""

from __future__ import annotations

import logging
from typing import Annotated

from fastmcp.exceptions import ToolError
from pydantic import Field

from .client import PanelResponse

logger = logging.getLogger(__name__)

DaemonId = Annotated[str, Field(description="Daemon ID")]
InstanceId = Annotated[str, Field(description="Instance ID")]


class PanelError(Exception):
    """The panel answered, but with a non-200 status."""

    def __init__(self, action: str, status: int) -> None:
        super().__init__(f"Failed to {action}: {status}")
        self.action = action
        self.status = status


def ensure_ok(resp: PanelResponse, action: str) -> PanelResponse:
    """Return *resp* unchanged, or raise PanelError if its status is not 200."""
    if not resp.ok:
        raise PanelError(action, resp.status)
    return resp


def error_message(doing: str, exc: BaseException) -> str:
    """Format the text reported back to the agent, e.g. ``Error starting instance: ...``."""
    return f"Error {doing}: {exc}"


def tool_error(doing: str, exc: Exception) -> ToolError:
    """Log *exc* and wrap it as the ToolError FastMCP reports with ``isError``."""
    message = error_message(doing, exc)
    if isinstance(exc, PanelError):
        logger.warning("%s", message)
    else:
        logger.error("%s", message, exc_info=exc)
    return ToolError(message)
