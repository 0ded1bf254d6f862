"""
auth/oauth.py -- Authlib OAuth provider configuration for Facebook and Google.

Reads configuration from core.config.get_settings() at module load to decide
which providers are active. Only providers with both client ID and secret
configured get registered.

The handshake itself (state, code exchange, CSRF) is authlib's job; the OAuth
state is kept in Starlette's SessionMiddleware between the authorization
redirect and the callback. This module only normalizes what comes back:
  - get_provider_identity(): (email, provider_account_id) from a token.
  - account_from_token():    an OAuthAccount ready for UserStore.link_account().
  - fetch_google_profile():  live Google profile for the settings page.

Scopes: both providers request the ad/sheets scopes the ad manager needs, so
one connection serves sign-in and API access.

Layer rule: no imports from api/, web/, audit/ or client/. Import from core/
is allowed -- core/ is the kernel layer.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from authlib.integrations.starlette_client import OAuth

from auth.models import OAuthAccount
from core.config import get_settings

logger = logging.getLogger("adpanel.auth.oauth")

PROVIDERS = ("facebook", "google")

_GRAPH_API = "https://graph.facebook.com/v19.0/"
_GOOGLE_USERINFO = "https://www.googleapis.com/oauth2/v1/userinfo"

_FACEBOOK_SCOPE = (
    "email,public_profile,ads_read,ads_management,pages_read_engagement,"
    "pages_show_list,pages_messaging,pages_manage_metadata"
)
_GOOGLE_SCOPE = (
    "openid email profile "
    "https://www.googleapis.com/auth/spreadsheets "
    "https://www.googleapis.com/auth/drive.file"
)

# Module-level session shared across profile fetches for connection pooling.
_session = requests.Session()
_session.max_redirects = 3

# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------

oauth = OAuth()

_cfg = get_settings()

if _cfg.facebook_app_id and _cfg.facebook_app_secret:
    oauth.register(
        name="facebook",
        client_id=_cfg.facebook_app_id,
        client_secret=_cfg.facebook_app_secret,
        access_token_url=f"{_GRAPH_API}oauth/access_token",  # noqa: S106 -- URL, not a password
        authorize_url="https://www.facebook.com/v19.0/dialog/oauth",
        api_base_url=_GRAPH_API,
        client_kwargs={"scope": _FACEBOOK_SCOPE},
    )
    logger.info("Facebook OAuth provider registered")

if _cfg.google_client_id and _cfg.google_client_secret:
    oauth.register(
        name="google",
        client_id=_cfg.google_client_id,
        client_secret=_cfg.google_client_secret,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        authorize_params={"access_type": "offline", "prompt": "consent"},
        client_kwargs={"scope": _GOOGLE_SCOPE},
    )
    logger.info("Google OAuth provider registered")


def get_enabled_providers() -> list[str]:
    """Return the names of providers with credentials configured."""
    cfg = get_settings()
    enabled: list[str] = []
    if cfg.facebook_app_id and cfg.facebook_app_secret:
        enabled.append("facebook")
    if cfg.google_client_id and cfg.google_client_secret:
        enabled.append("google")
    return enabled


# ---------------------------------------------------------------------------
# Token normalization
# ---------------------------------------------------------------------------


async def get_provider_identity(client, provider: str, token: dict) -> tuple[str | None, str]:
    """Extract (email, provider_account_id) from a provider token response.

    Facebook: the access token carries no identity, so GET /me is called.
    Google: the OIDC userinfo claims are already in the token.

    email may be None (Facebook accounts without a confirmed email); the
    caller decides whether that is acceptable.

    Raises:
        ValueError: the provider returned no stable account ID.
    """
    if provider == "facebook":
        resp = await client.get("me", params={"fields": "id,name,email"}, token=token)
        resp.raise_for_status()
        profile = resp.json()
        account_id = profile.get("id")
        email = profile.get("email")
    elif provider == "google":
        userinfo = token.get("userinfo") or {}
        account_id = userinfo.get("sub")
        email = userinfo.get("email") if userinfo.get("email_verified") else None
    else:
        raise ValueError(f"Unknown OAuth provider: {provider!r}")

    if not account_id:
        raise ValueError(f"{provider} OAuth: no account id in provider response")
    return email, str(account_id)


def account_from_token(user_id: int, provider: str, provider_account_id: str, token: dict) -> OAuthAccount:
    """Build the OAuthAccount row for a freshly exchanged token."""
    expires_at = token.get("expires_at")
    return OAuthAccount(
        user_id=user_id,
        provider=provider,
        provider_account_id=provider_account_id,
        access_token=token.get("access_token"),
        refresh_token=token.get("refresh_token"),
        scope=token.get("scope"),
        token_type=token.get("token_type"),
        id_token=token.get("id_token"),
        expires_at=int(expires_at) if expires_at is not None else None,
    )


def fetch_google_profile(access_token: str) -> dict[str, Any] | None:
    """Fetch {name, email, picture} for a stored Google access token.

    Returns None on any network or HTTP failure; the caller falls back to the
    locally stored user details.
    """
    try:
        resp = _session.get(
            _GOOGLE_USERINFO,
            params={"alt": "json"},
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10,
        )
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError):
        logger.exception("Error fetching Google profile")
        return None
    return {"name": data.get("name"), "email": data.get("email"), "picture": data.get("picture")}
