"""
tests/test_admin_tokens.py -- Issuance and verification of admin panel tokens.
"""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

from jose import jwt

from auth.admin_tokens import ADMIN_TOKEN_TTL, create_admin_token, verify_admin_token
from core.config import get_settings


class TestAdminTokens:
    def test_fresh_token_verifies(self) -> None:
        assert verify_admin_token(create_admin_token()) is True

    def test_claims(self) -> None:
        claims = jwt.decode(create_admin_token(), get_settings().admin_signing_key, algorithms=["HS256"])
        assert claims["role"] == "admin"
        assert claims["isAdmin"] is True
        assert claims["exp"] - claims["iat"] == int(ADMIN_TOKEN_TTL.total_seconds())

    def test_tampered_token_rejected(self) -> None:
        head, _payload, signature = create_admin_token().split(".")
        forged_claims = {"role": "admin", "isAdmin": True, "exp": 4102444800}
        forged_payload = base64.urlsafe_b64encode(json.dumps(forged_claims).encode()).rstrip(b"=").decode()
        assert verify_admin_token(f"{head}.{forged_payload}.{signature}") is False

    def test_token_signed_with_other_key_rejected(self) -> None:
        forged = jwt.encode({"role": "admin", "isAdmin": True}, "x" * 64, algorithm="HS256")
        assert verify_admin_token(forged) is False

    def test_expired_token_rejected(self) -> None:
        issued = datetime.now(timezone.utc) - ADMIN_TOKEN_TTL - timedelta(minutes=1)
        assert verify_admin_token(create_admin_token(now=issued)) is False

    def test_token_without_admin_claim_rejected(self) -> None:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
        token = jwt.encode({"role": "admin", "exp": exp}, get_settings().admin_signing_key, algorithm="HS256")
        assert verify_admin_token(token) is False

    def test_truthy_but_not_true_admin_claim_rejected(self) -> None:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
        token = jwt.encode({"isAdmin": "yes", "exp": exp}, get_settings().admin_signing_key, algorithm="HS256")
        assert verify_admin_token(token) is False

    def test_garbage_and_empty_rejected(self) -> None:
        assert verify_admin_token("not-a-jwt") is False
        assert verify_admin_token("") is False
        assert verify_admin_token(None) is False
