from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.common.auth import AuthenticationError, Authenticator, Principal
from app.common.config import Settings

TOKEN_SECRET = "jwt-secret"


def _issue_token(claims: dict[str, object], *, secret: str = TOKEN_SECRET) -> str:
    payload = {"exp": datetime.now(timezone.utc) + timedelta(minutes=5), **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


def _authenticator(**overrides) -> Authenticator:
    values = {"AUTH_ENABLED": True, "AUTH_TOKEN_SECRET": TOKEN_SECRET}
    values.update(overrides)
    return Authenticator(Settings(**values))


def test_legacy_header_identity_when_auth_disabled():
    principal = Authenticator(Settings()).authenticate(None, "alice")

    assert principal.user_id == "alice"
    assert principal.source == "legacy"
    assert principal.is_identified


def test_legacy_without_header_is_unidentified():
    principal = Authenticator(Settings()).authenticate(None, None)

    assert principal.user_id is None
    assert not principal.is_identified


def test_blank_header_is_unidentified():
    principal = Authenticator(Settings()).authenticate(None, "   ")

    assert not principal.is_identified


def test_username_claim_wins_over_sub():
    token = _issue_token({"sub": "uuid-1", "cognito:username": "carol"})

    principal = _authenticator().authenticate(f"Bearer {token}", "mallory")

    assert principal == Principal(user_id="carol", source="bearer")


def test_falls_back_to_sub():
    token = _issue_token({"sub": "uuid-1"})

    assert _authenticator().authenticate(f"Bearer {token}", None).user_id == "uuid-1"


def test_custom_username_claim():
    token = _issue_token({"sub": "uuid-1", "preferred_username": "dave"})

    principal = _authenticator(AUTH_USERNAME_CLAIM="preferred_username").authenticate(
        f"Bearer {token}", None
    )

    assert principal.user_id == "dave"


def test_token_without_identity_claims_is_unidentified():
    token = _issue_token({"scope": "objects"})

    principal = _authenticator().authenticate(f"Bearer {token}", None)

    assert not principal.is_identified


def test_missing_token_rejected():
    with pytest.raises(AuthenticationError, match="Missing bearer token"):
        _authenticator().authenticate(None, "alice")


def test_anonymous_allowed_uses_header():
    principal = _authenticator(AUTH_ALLOW_ANONYMOUS=True).authenticate(None, "alice")

    assert principal.user_id == "alice"
    assert principal.source == "anonymous"


@pytest.mark.parametrize("header", ["Basic abc", "Bearer    "])
def test_malformed_header_rejected(header):
    with pytest.raises(AuthenticationError):
        _authenticator().authenticate(header, None)


def test_wrong_signature_rejected():
    token = _issue_token({"sub": "uuid-1"}, secret="other-secret")

    with pytest.raises(AuthenticationError, match="Invalid authentication token"):
        _authenticator().authenticate(f"Bearer {token}", None)


def test_expired_token_rejected():
    token = jwt.encode(
        {"sub": "uuid-1", "exp": datetime.now(timezone.utc) - timedelta(minutes=5)},
        TOKEN_SECRET,
        algorithm="HS256",
    )

    with pytest.raises(AuthenticationError):
        _authenticator().authenticate(f"Bearer {token}", None)


def test_audience_is_enforced():
    token = _issue_token({"sub": "uuid-1", "aud": "other"})

    with pytest.raises(AuthenticationError):
        _authenticator(AUTH_TOKEN_AUDIENCE="cloudstore").authenticate(
            f"Bearer {token}", None
        )


def test_missing_secret_rejected():
    token = _issue_token({"sub": "uuid-1"})

    with pytest.raises(AuthenticationError, match="secret is not configured"):
        _authenticator(AUTH_TOKEN_SECRET=None).authenticate(f"Bearer {token}", None)
