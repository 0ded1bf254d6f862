"""
client/route_guard.py -- Client-side mirror of the server route guard.

Used by code that renders content without a server round-trip of its own
(front-end shells, automation driving a running instance). Before showing a
route it asks the server once:

    GET /api/auth/check-access?route=/admanager

and navigates to redirectTo when the server says no. The server-side guard
remains the authoritative enforcement point, so any failure here (network,
non-JSON body, unexpected shape) is logged and the guard fails open.

No retry and no caching: every check() is a fresh request.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger("adpanel.client")

CHECK_ACCESS_PATH = "/api/auth/check-access"


class ClientRouteGuard:
    """Ask the server whether the current session may view a route.

    Usage:
        async with httpx.AsyncClient(base_url="https://panel.example.com", cookies=...) as http:
            guard = ClientRouteGuard(http)
            if target := await guard.check("/admanager"):
                navigate(target)
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def check(self, route: str) -> str | None:
        """Return the redirect target if access is denied, else None."""
        try:
            response = await self._client.get(CHECK_ACCESS_PATH, params={"route": route})
            data = response.json()
        except (httpx.HTTPError, ValueError):
            logger.exception("Failed to check route access for %s", route)
            return None

        if not isinstance(data, dict):
            logger.error("Unexpected check-access payload for %s: %r", route, data)
            return None
        if not data.get("hasAccess") and data.get("redirectTo"):
            return data["redirectTo"]
        return None
