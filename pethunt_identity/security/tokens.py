"""Utilities for issuing and validating session JWTs."""

from __future__ import annotations

import time
from typing import Any

import jwt

from ..config import Settings
from ..domain.account import Account

ALGORITHM = "HS256"


class TokenRejected(Exception):
    """The presented bearer token is malformed, expired, or not ours."""


class TokenIssuer:
    """Signs and verifies the compact session tokens handed to clients."""

    def __init__(self, *, secret: str, issuer: str, audience: str, ttl_seconds: int = 3600) -> None:
        if not secret:
            raise ValueError("token signing secret must not be empty")
        self._secret = secret
        self._issuer = issuer
        self._audience = audience
        self._ttl_seconds = ttl_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            ttl_seconds=settings.jwt_ttl_seconds,
        )

    def __repr__(self) -> str:
        return f"TokenIssuer(issuer={self._issuer!r}, audience={self._audience!r})"

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, account: Account) -> str:
        """Create a signed JWT for an authenticated account.

        Parameters
        ----------
        account:
            The account whose ``username`` and ``id`` become the
            ``username`` and ``userId`` claims.

        Returns
        -------
        str
            The encoded token, valid for ``ttl_seconds`` from now.
        """

        now = int(time.time())
        payload: dict[str, Any] = {
            "iss": self._issuer,
            "aud": self._audience,
            "username": account.username,
            "userId": account.id,
            "iat": now,
            "exp": now + self._ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, token: str) -> dict[str, Any]:
        """Verify signature, issuer, audience and expiry, returning the claims.

        Raises
        ------
        TokenRejected
            When PyJWT rejects the token for any reason.
        """

        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                options={"require": ["exp", "iss", "aud", "userId"]},
            )
        except jwt.PyJWTError as exc:
            raise TokenRejected(str(exc)) from exc
