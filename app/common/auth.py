"""Caller identity for the object API.

The identity doubles as the caller's storage namespace. With AUTH_ENABLED it
comes from a verified bearer token, otherwise from the ``X-User-Id`` header.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import jwt
from jwt import PyJWTError

from app.common.config import Settings

logger = logging.getLogger("auth")

BEARER_SCHEME = "bearer"
FALLBACK_IDENTITY_CLAIM = "sub"


class AuthenticationError(Exception):
    """Raised when a request carries no usable credentials."""


@dataclass(frozen=True)
class Principal:
    """Caller identity. ``user_id`` doubles as the storage namespace."""

    user_id: str | None
    source: str

    @property
    def is_identified(self) -> bool:
        return bool(self.user_id and self.user_id.strip())

    @classmethod
    def from_header(cls, user_id: str | None, *, source: str) -> "Principal":
        return cls(user_id=user_id or None, source=source)


def parse_bearer(authorization_header: str | None) -> str | None:
    """Token carried by an ``Authorization: Bearer`` header, if any.

    Raises:
        AuthenticationError: If the header uses another scheme.
    """
    if authorization_header is None:
        return None
    scheme, _, credentials = authorization_header.strip().partition(" ")
    if not scheme:
        return None
    if scheme.lower() != BEARER_SCHEME:
        raise AuthenticationError("Invalid authorization header")
    return credentials.strip() or None


class Authenticator:
    def __init__(self, settings: Settings):
        self._settings = settings
        self._identity_claims = (settings.AUTH_USERNAME_CLAIM, FALLBACK_IDENTITY_CLAIM)

    def authenticate(
        self,
        authorization_header: str | None,
        fallback_user_id: str | None,
    ) -> Principal:
        if not self._settings.AUTH_ENABLED:
            return Principal.from_header(fallback_user_id, source="legacy")

        token = parse_bearer(authorization_header)
        if token is None:
            if self._settings.AUTH_ALLOW_ANONYMOUS:
                return Principal.from_header(fallback_user_id, source="anonymous")
            raise AuthenticationError("Missing bearer token")

        claims = self._decode_token(token)
        return Principal(user_id=self._resolve_username(claims), source="bearer")

    def _resolve_username(self, claims: Mapping[str, Any]) -> str | None:
        # Cognito access tokens carry the login name; plain OIDC tokens only sub
        for claim in self._identity_claims:
            value = claims.get(claim)
            if value not in (None, ""):
                return str(value)
        return None

    def _decode_options(self) -> dict[str, Any]:
        settings = self._settings
        optional = {
            "audience": settings.AUTH_TOKEN_AUDIENCE,
            "issuer": settings.AUTH_TOKEN_ISSUER,
            "leeway": settings.AUTH_TOKEN_LEEWAY,
        }
        options: dict[str, Any] = {"algorithms": [settings.AUTH_TOKEN_ALGORITHM]}
        options.update({name: value for name, value in optional.items() if value})
        return options

    def _decode_token(self, token: str) -> dict[str, Any]:
        secret = self._settings.AUTH_TOKEN_SECRET
        if not secret:
            raise AuthenticationError(
                "Authentication secret is not configured while AUTH_ENABLED is true"
            )
        try:
            return jwt.decode(token, secret, **self._decode_options())
        except PyJWTError as exc:
            logger.debug("token_decode_error", exc_info=exc)
            raise AuthenticationError("Invalid authentication token") from exc
