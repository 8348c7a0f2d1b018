"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ProfileFields:
    """Optional profile attributes captured at registration."""

    display_name: str | None = None
    city: str | None = None
    region: str | None = None
    country: str | None = None


@dataclass(slots=True)
class Registration:
    """Raw registration input handed to the account service."""

    email: str
    password: str
    username: str
    profile: ProfileFields | None = None


@dataclass(slots=True)
class NewAccount:
    """Validated candidate row passed to the repository for insertion."""

    email: str
    username: str
    credential_digest: str
    profile: ProfileFields
