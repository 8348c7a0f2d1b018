from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    user = "user"
    admin = "admin"


@dataclass(slots=True)
class Account:
    """Aggregate root for a platform identity."""

    id: str
    email: str
    username: str
    created_at: datetime
    updated_at: datetime
    role: Role = Role.user
    active: bool = True
    display_name: str | None = None
    city: str | None = None
    region: str | None = None
    country: str | None = None
    last_authenticated_at: datetime | None = None


@dataclass(slots=True)
class AccountCredentials:
    """An account together with its stored credential digest, loaded in one read."""

    account: Account
    credential_digest: str
