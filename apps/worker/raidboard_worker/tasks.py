from __future__ import annotations

import logging

import httpx

from .config import Settings

logger = logging.getLogger(__name__)


def refresh_boss_map(settings: Settings, transport: httpx.BaseTransport | None = None) -> tuple[bool, str]:
    """Ask the API to reload its boss-name mapping feed. Never raises."""
    url = f"{settings.api_base_url.rstrip('/')}/v1/admin/boss-map/refresh"
    params = {"token": settings.boss_map_refresh_token} if settings.boss_map_refresh_token else None
    try:
        with httpx.Client(timeout=settings.request_timeout_seconds, transport=transport) as client:
            res = client.post(url, params=params)
        res.raise_for_status()
        payload = res.json()
    except (httpx.HTTPError, ValueError) as exc:
        return False, f"refresh failed: {exc}"
    return True, f"boss map refreshed source={payload.get('source')} entries={payload.get('entries')}"
