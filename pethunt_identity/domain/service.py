"""Account service orchestrating registration and authentication."""

from __future__ import annotations

import dataclasses
import logging
import re
from datetime import datetime, timezone
from typing import Protocol

import anyio
from email_validator import EmailNotValidError, validate_email

from .account import Account, AccountCredentials
from .contracts import NewAccount, ProfileFields, Registration
from .errors import (
    AuthenticationFailure,
    AuthenticationUnavailable,
    Conflict,
    DuplicateEmail,
    DuplicateUsername,
    EncodingError,
    NotFound,
    StoreError,
    UnexpectedError,
    ValidationError,
)
from ..security.hasher import CredentialHasher

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]{1,50}$")
EMAIL_MAX_LENGTH = 255
PROFILE_FIELD_MAX_LENGTH = 100


class AccountStore(Protocol):
    """Persistence operations the service relies on."""

    async def create(self, candidate: NewAccount) -> Account: ...

    async def find_by_email(self, email: str) -> Account | None: ...

    async def find_by_username(self, username: str) -> Account | None: ...

    async def find_by_id(self, account_id: str) -> Account | None: ...

    async def find_credentials_by_email(self, email: str) -> AccountCredentials | None: ...

    async def record_authentication(self, account_id: str, authenticated_at: datetime) -> bool: ...


class AccountService:
    """Registration and authentication rules over the account store."""

    def __init__(self, repository: AccountStore, hasher: CredentialHasher) -> None:
        """Store dependencies used to orchestrate hashing and persistence."""
        self._repository = repository
        self._hasher = hasher
        # Verified against when the email is unknown so both failure paths cost one verification.
        self._decoy_digest = hasher.hash("pethunt-decoy-credential")

    async def register_account(self, registration: Registration) -> Account:
        """Create an account after advisory duplicate checks.

        The store's unique indexes are the authoritative guard: a ``Conflict``
        raised by the insert is translated to the same duplicate errors the
        pre-checks produce, so concurrent registrations racing past the
        pre-checks still fail cleanly.

        Raises
        ------
        ValidationError
            Malformed email, username, password or profile field.
        DuplicateEmail, DuplicateUsername
            The email or username already belongs to an account.
        """
        email = normalise_email(registration.email)
        username = _validate_username(registration.username)
        profile = _validate_profile(registration.profile or ProfileFields())

        if await self._repository.find_by_email(email) is not None:
            raise DuplicateEmail(f"email {email!r} already registered")
        if await self._repository.find_by_username(username) is not None:
            raise DuplicateUsername(f"username {username!r} already taken")

        try:
            digest = await anyio.to_thread.run_sync(self._hasher.hash, registration.password)
        except EncodingError as exc:
            raise ValidationError(f"password rejected: {exc}") from exc

        candidate = NewAccount(email=email, username=username, credential_digest=digest, profile=profile)
        try:
            account = await self._repository.create(candidate)
        except Conflict as exc:
            raise _duplicate_from(exc) from exc

        logger.info("account %s registered", account.id)
        return account

    async def authenticate(self, email: str, password: str) -> Account:
        """Return the account for valid credentials.

        Unknown emails, wrong passwords and inactive accounts all raise the
        same ``AuthenticationFailure``. Storage failures raise
        ``AuthenticationUnavailable``.
        """
        try:
            normalised = normalise_email(email)
        except ValidationError as exc:
            raise AuthenticationFailure() from exc

        try:
            credentials = await self._repository.find_credentials_by_email(normalised)
            if credentials is None:
                await self._verify(password, self._decoy_digest)
                raise AuthenticationFailure()

            account = credentials.account
            if not await self._verify(password, credentials.credential_digest) or not account.active:
                raise AuthenticationFailure()

            authenticated_at = datetime.now(timezone.utc)
            if not await self._repository.record_authentication(account.id, authenticated_at):
                logger.warning("account %s vanished before its login could be recorded", account.id)
        except StoreError as exc:
            logger.exception("account store failed during authentication")
            raise AuthenticationUnavailable() from exc

        return dataclasses.replace(account, last_authenticated_at=authenticated_at)

    async def get_account(self, account_id: str) -> Account:
        """Fetch an account by identifier, raising ``NotFound`` when absent."""
        account = await self._repository.find_by_id(account_id)
        if account is None:
            raise NotFound(f"account {account_id!r} not found")
        return account

    async def _verify(self, password: str, digest: str) -> bool:
        try:
            return await anyio.to_thread.run_sync(self._hasher.verify, password, digest)
        except EncodingError as exc:
            logger.info("credential verification rejected input: %s", exc)
            return False


def normalise_email(email: str) -> str:
    """Canonicalise an email address with email-validator and lower-case it.

    Registration and login both go through here, so any spelling that
    registers (Unicode normalisation forms, letter case, surrounding spaces)
    finds the same row at login.
    """
    if not isinstance(email, str):
        raise ValidationError("email must be a string")
    try:
        validated = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError(f"email is malformed: {exc}") from exc
    normalised = validated.normalized.lower()
    if len(normalised) > EMAIL_MAX_LENGTH:
        raise ValidationError(f"email exceeds {EMAIL_MAX_LENGTH} characters")
    return normalised


def _validate_username(username: str) -> str:
    if not isinstance(username, str) or not USERNAME_PATTERN.match(username.strip()):
        raise ValidationError("username must be 1-50 letters, digits, '.', '_' or '-'")
    return username.strip()


def _validate_profile(profile: ProfileFields) -> ProfileFields:
    cleaned = {}
    for field in dataclasses.fields(profile):
        value = getattr(profile, field.name)
        if value is not None:
            value = value.strip() or None
        if value is not None and len(value) > PROFILE_FIELD_MAX_LENGTH:
            raise ValidationError(f"{field.name} exceeds {PROFILE_FIELD_MAX_LENGTH} characters")
        cleaned[field.name] = value
    return ProfileFields(**cleaned)


def _duplicate_from(conflict: Conflict) -> Exception:
    if conflict.field == "email":
        return DuplicateEmail("email already registered")
    if conflict.field == "username":
        return DuplicateUsername("username already taken")
    return UnexpectedError(f"unexpected uniqueness conflict on {conflict.field}")
