"""MCP server exposing Yayasan portal attendance tools."""

from __future__ import annotations

from dataclasses import asdict
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .api import dashboard_to_dict, history_entry_to_dict
from .backend_client import BackendClient
from .config import load_settings
from .service import PortalService

mcp = FastMCP("yayasan-portal")

_settings = load_settings()
_client = BackendClient(_settings.supabase_url, _settings.supabase_anon_key, _settings.http_timeout)
_service = PortalService(_settings, _client)


@mcp.tool()
async def get_member_statistics(member_id: str) -> dict:
    """Return present/total/percentage attendance for a member."""

    stats = await _service.statistics_for(member_id)
    return {"member_id": member_id, **stats.as_dict()}


@mcp.tool()
async def get_member_history(member_id: str) -> dict:
    """Return a member's attendance history, newest event first."""

    entries = await _service.history_for(member_id)
    return {"member_id": member_id, "history": [history_entry_to_dict(entry) for entry in entries]}


@mcp.tool()
async def get_upcoming_events(limit: Optional[int] = None) -> dict:
    """Return the soonest upcoming events."""

    events = await _service.upcoming_events(limit)
    return {"events": [asdict(event) for event in events]}


@mcp.tool()
async def get_member_dashboard(member_id: str) -> dict:
    """Return the full portal view for a member: card data, stats, agenda and history."""

    return dashboard_to_dict(await _service.member_dashboard(member_id))


__all__ = [
    "mcp",
    "get_member_statistics",
    "get_member_history",
    "get_upcoming_events",
    "get_member_dashboard",
]


if __name__ == "__main__":  # pragma: no cover
    mcp.run()
