from __future__ import annotations

import uuid
from datetime import datetime, timezone

import anyio
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from pethunt_identity.api import routes
from pethunt_identity.api.errors import install_exception_handlers
from pethunt_identity.domain.account import Account, AccountCredentials
from pethunt_identity.domain.contracts import NewAccount
from pethunt_identity.domain.errors import Conflict, StoreError
from pethunt_identity.domain.service import AccountService
from pethunt_identity.security.hasher import CredentialHasher
from pethunt_identity.security.tokens import TokenIssuer

TEST_SECRET = "test-signing-secret-with-at-least-32-bytes"


class FakeRepository:
    """In-memory repository mimicking the Postgres-backed store, unique indexes included."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.digests: dict[str, str] = {}
        self.fail_with: StoreError | None = None
        self.credential_reads = 0

    async def _round_trip(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        await anyio.sleep(0)

    async def create(self, candidate: NewAccount) -> Account:
        await self._round_trip()
        # No suspension between the uniqueness check and the insert, like a unique index.
        for account in self.accounts.values():
            if account.email == candidate.email:
                raise Conflict("email")
            if account.username == candidate.username:
                raise Conflict("username")
        now = datetime.now(timezone.utc)
        account = Account(
            id=str(uuid.uuid4()),
            email=candidate.email,
            username=candidate.username,
            created_at=now,
            updated_at=now,
            display_name=candidate.profile.display_name,
            city=candidate.profile.city,
            region=candidate.profile.region,
            country=candidate.profile.country,
        )
        self.accounts[account.id] = account
        self.digests[account.id] = candidate.credential_digest
        return account

    async def find_by_email(self, email: str) -> Account | None:
        await self._round_trip()
        return next((a for a in self.accounts.values() if a.email == email), None)

    async def find_by_username(self, username: str) -> Account | None:
        await self._round_trip()
        return next((a for a in self.accounts.values() if a.username == username), None)

    async def find_by_id(self, account_id: str) -> Account | None:
        await self._round_trip()
        return self.accounts.get(account_id)

    async def find_credentials_by_email(self, email: str) -> AccountCredentials | None:
        await self._round_trip()
        self.credential_reads += 1
        for account in self.accounts.values():
            if account.email == email:
                return AccountCredentials(account=account, credential_digest=self.digests[account.id])
        return None

    async def record_authentication(self, account_id: str, authenticated_at: datetime) -> bool:
        await self._round_trip()
        account = self.accounts.get(account_id)
        if account is None:
            return False
        account.last_authenticated_at = authenticated_at
        return True


class BlindPrecheckRepository(FakeRepository):
    """Pre-checks never see existing rows, as when concurrent registrations race past them."""

    async def find_by_email(self, email: str) -> Account | None:
        await self._round_trip()
        return None

    async def find_by_username(self, username: str) -> Account | None:
        await self._round_trip()
        return None


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(scope="session")
def hasher() -> CredentialHasher:
    """Cheap Argon2 parameters so the suite stays fast."""
    return CredentialHasher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def service(repository: FakeRepository, hasher: CredentialHasher) -> AccountService:
    return AccountService(repository, hasher)


@pytest.fixture
def token_issuer() -> TokenIssuer:
    return TokenIssuer(secret=TEST_SECRET, issuer="pethunt-test", audience="pethunt-test-clients")


@pytest.fixture
def api_client(service: AccountService, token_issuer: TokenIssuer):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    app.include_router(routes.router)
    install_exception_handlers(app)
    app.state.account_service = service
    app.state.token_issuer = token_issuer

    with TestClient(app) as client:
        yield client


@pytest.fixture
def blind_repository() -> BlindPrecheckRepository:
    return BlindPrecheckRepository()
