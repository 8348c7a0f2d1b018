"""Credential hashing backed by Argon2id.

Digests are PHC-encoded strings (``$argon2id$v=19$m=...,t=...,p=...$salt$tag``)
so every digest carries its own salt and cost parameters; verification
recomputes the tag under exactly those parameters.
"""

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from ..domain.errors import EncodingError

MAX_SECRET_LENGTH = 1024

MAX_TIME_COST = 10
MAX_MEMORY_COST_KIB = 256 * 1024
MAX_PARALLELISM = 8


class CredentialHasher:
    """Salted, memory-hard password hashing with bounded cost."""

    def __init__(self, *, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4) -> None:
        if not 1 <= parallelism <= MAX_PARALLELISM:
            raise ValueError(f"parallelism must be between 1 and {MAX_PARALLELISM}")
        if not 1 <= time_cost <= MAX_TIME_COST:
            raise ValueError(f"time_cost must be between 1 and {MAX_TIME_COST}")
        if not 8 * parallelism <= memory_cost <= MAX_MEMORY_COST_KIB:
            raise ValueError(
                f"memory_cost must be between {8 * parallelism} and {MAX_MEMORY_COST_KIB} KiB"
            )
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, secret: str) -> str:
        """Return an encoded Argon2id digest of ``secret`` under a fresh random salt."""
        return self._hasher.hash(_encode(secret))

    def verify(self, secret: str, digest: str) -> bool:
        """Return ``True`` when ``secret`` reproduces ``digest``.

        The tag comparison is constant-time. Raises ``EncodingError`` when the
        secret cannot be encoded or the digest is not a valid Argon2 string.
        """
        encoded = _encode(secret)
        if not isinstance(digest, str) or not digest:
            raise EncodingError("credential digest is empty")
        try:
            return self._hasher.verify(digest, encoded)
        except VerifyMismatchError:
            return False
        except InvalidHashError as exc:
            raise EncodingError("credential digest is malformed") from exc
        except VerificationError:
            return False

    def needs_rehash(self, digest: str) -> bool:
        """Whether ``digest`` was produced with different cost parameters than the current ones."""
        try:
            return self._hasher.check_needs_rehash(digest)
        except InvalidHashError as exc:
            raise EncodingError("credential digest is malformed") from exc


def _encode(secret: str) -> bytes:
    if not isinstance(secret, str):
        raise EncodingError("secret must be a string")
    if not secret:
        raise EncodingError("secret must not be empty")
    if len(secret) > MAX_SECRET_LENGTH:
        raise EncodingError(f"secret exceeds {MAX_SECRET_LENGTH} characters")
    try:
        return secret.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodingError("secret is not representable as UTF-8") from exc
