"""Tests for core auth and hashing modules.

Covers JWT creation/decoding, the caller-identity and admin dependencies,
and the SHA-256 market event hash.
All pure function tests, no DB fixtures needed.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from jose import jwt

from assetmarket.config import settings
from assetmarket.core.auth import (
    create_access_token,
    decode_token,
    get_current_account_id,
    is_admin,
    require_admin,
)
from assetmarket.core.exceptions import ForbiddenError, UnauthorizedError
from assetmarket.core.hashing import _norm, compute_event_hash


# ===========================================================================
# auth.py: create_access_token / decode_token
# ===========================================================================


class TestTokens:
    def test_create_access_token_has_correct_claims(self):
        token = create_access_token("acct-42")
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
        assert payload["sub"] == "acct-42"
        assert "exp" in payload
        assert "iat" in payload

    def test_create_access_token_exp_in_future(self):
        payload = decode_token(create_access_token("acct-1"))
        exp_dt = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        assert exp_dt > datetime.now(timezone.utc) + timedelta(hours=1)

    def test_decode_token_rejects_garbage(self):
        with pytest.raises(UnauthorizedError):
            decode_token("not-a-jwt")

    def test_decode_token_rejects_wrong_secret(self):
        token = jwt.encode(
            {"sub": "acct-1", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            "some-other-secret",
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(UnauthorizedError):
            decode_token(token)

    def test_decode_token_rejects_expired(self):
        token = jwt.encode(
            {"sub": "acct-1", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(UnauthorizedError):
            decode_token(token)

    def test_decode_token_requires_subject(self):
        token = jwt.encode(
            {"exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(UnauthorizedError):
            decode_token(token)


# ===========================================================================
# auth.py: dependencies
# ===========================================================================


class TestAuthDependencies:
    def test_get_current_account_id_from_bearer(self):
        token = create_access_token("acct-7")
        assert get_current_account_id(f"Bearer {token}") == "acct-7"

    def test_get_current_account_id_missing_header(self):
        with pytest.raises(UnauthorizedError):
            get_current_account_id(None)

    def test_get_current_account_id_wrong_scheme(self):
        token = create_access_token("acct-7")
        with pytest.raises(UnauthorizedError):
            get_current_account_id(f"Basic {token}")

    def test_require_admin(self, monkeypatch):
        monkeypatch.setattr(settings, "admin_account_ids", "root, ops")
        assert is_admin("ops")
        assert require_admin("root") == "root"
        with pytest.raises(ForbiddenError):
            require_admin("acct-7")


# ===========================================================================
# hashing.py
# ===========================================================================


class TestEventHash:
    def test_norm(self):
        assert _norm(None) == "NONE"
        assert _norm(10) == "10.000000"
        assert _norm(Decimal("0.1234567")) == "0.123457"

    def test_genesis_hash_matches_manual_sha256(self):
        ts = "2026-01-01T00:00:00"
        expected = hashlib.sha256(
            f"GENESIS|1|listed|7|alice|-|-|5.000000|{ts}".encode("utf-8")
        ).hexdigest()
        assert compute_event_hash(None, 1, "listed", 7, "alice", None, None, 5, ts) == expected

    def test_hash_depends_on_previous(self):
        ts = "2026-01-01T00:00:00"
        a = compute_event_hash(None, 2, "cancelled", 7, "alice", None, "alice", None, ts)
        b = compute_event_hash("abc", 2, "cancelled", 7, "alice", None, "alice", None, ts)
        assert a != b
        assert len(a) == 64

    def test_price_formatting_does_not_change_hash(self):
        ts = "2026-01-01T00:00:00"
        a = compute_event_hash("h", 3, "bought", 1, "alice", "bob", "bob", Decimal("10"), ts)
        b = compute_event_hash("h", 3, "bought", 1, "alice", "bob", "bob", "10.000000", ts)
        assert a == b
