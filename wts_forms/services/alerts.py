"""
Discord webhook alerts for the submission pipelines.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
import structlog

from wts_forms.core.config import settings

logger = structlog.get_logger(__name__)

COLOR_RED = 0xEF4444
COLOR_YELLOW = 0xF59E0B
COLOR_GREEN = 0x10B981

STATE_COLORS = {
    "open": COLOR_RED,
    "half_open": COLOR_YELLOW,
    "closed": COLOR_GREEN,
}


async def send_alert(
    title: str,
    description: str,
    color: int,
    fields: Optional[List[Dict[str, Any]]] = None,
    webhook_url: Optional[str] = None,
    username: str = "WTS Forms",
    client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """Post an embed to the alerts webhook. Returns False when unset or on failure."""
    url = webhook_url if webhook_url is not None else settings.DISCORD_ALERTS_WEBHOOK_URL
    if not url:
        return False

    embed: Dict[str, Any] = {
        "title": title,
        "description": description,
        "color": color,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "footer": {"text": settings.PROJECT_NAME},
    }
    if fields:
        embed["fields"] = fields

    body = {"username": username, "embeds": [embed]}
    try:
        if client is not None:
            response = await client.post(url, json=body, timeout=5)
        else:
            async with httpx.AsyncClient(timeout=5) as owned:
                response = await owned.post(url, json=body)
        return response.status_code in (200, 204)
    except httpx.HTTPError as e:
        logger.warning("Discord alert failed", title=title, error=str(e))
        return False


async def alert_circuit_state(name: str, old_state: str, new_state: str, **kwargs: Any) -> bool:
    """A breaker changed state."""
    return await send_alert(
        title=f"Circuit {name}: {old_state.upper()} -> {new_state.upper()}",
        description=f"Submissions for **{name}** are "
        + ("being queued for later" if new_state == "open" else "being sent directly"),
        color=STATE_COLORS.get(new_state, COLOR_YELLOW),
        **kwargs,
    )


async def alert_queue_unhealthy(name: str, status: Dict[str, Any], **kwargs: Any) -> bool:
    """A submission queue is at or above its healthy fill level."""
    return await send_alert(
        title=f"Submission queue {name} unhealthy",
        description=f"**{status['pending']}** submissions waiting to be synced",
        color=COLOR_RED,
        fields=[
            {"name": "Pending", "value": f"`{status['pending']}`", "inline": True},
            {"name": "Failed", "value": f"`{status['failed']}`", "inline": True},
            {"name": "Oldest", "value": f"`{status['oldest_submission'] or '-'}`", "inline": True},
        ],
        **kwargs,
    )
