"""
auth/admin_tokens.py -- Short-lived admin panel tokens.

Admin tokens are independent of user sessions: the admin login endpoint
checks the configured ADMIN_USERNAME / ADMIN_PASSWORD and hands out a signed
JWT with the claims {"role": "admin", "isAdmin": true}. The token is stateless
(no revocation list) and is trusted only on signature and expiry.

verify_admin_token() collapses every failure (bad signature, expired,
malformed, missing claim) into False. Callers cannot tell the causes apart.

Signing key: Settings.admin_signing_key (ADMIN_TOKEN_SECRET, else SECRET_KEY).

Layer rule: no imports from api/, web/, audit/ or client/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("adpanel.auth.admin")

_ALGORITHM = "HS256"

ADMIN_TOKEN_TTL = timedelta(hours=24)
ADMIN_COOKIE = "admin_token"


def create_admin_token(now: datetime | None = None) -> str:
    """Return a signed admin token valid for ADMIN_TOKEN_TTL.

    now is injectable so tests can mint tokens that are already expired.
    """
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "role": "admin",
        "isAdmin": True,
        "iat": issued_at,
        "exp": issued_at + ADMIN_TOKEN_TTL,
    }
    return jwt.encode(payload, get_settings().admin_signing_key, algorithm=_ALGORITHM)


def verify_admin_token(token: str | None) -> bool:
    """Return True only for a valid, unexpired token whose isAdmin claim is True."""
    if not token:
        return False
    try:
        payload = jwt.decode(token, get_settings().admin_signing_key, algorithms=[_ALGORITHM])
    except JWTError:
        logger.debug("Admin token rejected")
        return False
    return payload.get("isAdmin") is True
