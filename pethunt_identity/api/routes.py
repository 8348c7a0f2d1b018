"""HTTP route definitions for the identity service."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..domain.account import Account
from ..domain.contracts import ProfileFields, Registration
from ..domain.errors import AuthenticationFailure, DuplicateEmail, DuplicateUsername
from ..domain.service import AccountService
from ..security.tokens import TokenIssuer, TokenRejected

router = APIRouter()

bearer_scheme = HTTPBearer(auto_error=False)

REGISTRATIONS = Counter(
    "identity_registrations_total", "Account registration attempts by outcome.", ["outcome"]
)
LOGINS = Counter("identity_logins_total", "Login attempts by outcome.", ["outcome"])


class AccountResponse(BaseModel):
    """Serialised representation of an `Account` aggregate."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    email: str
    username: str
    full_name: str | None = None
    role: str
    active: bool
    city: str | None = None
    region: str | None = None
    country: str | None = None
    created_at: datetime
    last_authenticated_at: datetime | None = None

    @classmethod
    def from_domain(cls, account: Account) -> "AccountResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            id=account.id,
            email=account.email,
            username=account.username,
            full_name=account.display_name,
            role=account.role.value,
            active=account.active,
            city=account.city,
            region=account.region,
            country=account.country,
            created_at=account.created_at,
            last_authenticated_at=account.last_authenticated_at,
        )


class RegisterRequest(BaseModel):
    """Payload accepted when registering an account."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=1024)
    username: str = Field(..., min_length=1, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    full_name: str | None = Field(default=None, max_length=100)
    city: str | None = Field(default=None, max_length=100)
    region: str | None = Field(default=None, max_length=100)
    country: str | None = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    """JSON body used to exchange credentials for a session token."""

    email: str
    password: str


class AuthResponse(BaseModel):
    """Session token together with the authenticated account."""

    token: str
    account: AccountResponse


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_token_issuer(request: Request) -> TokenIssuer:
    issuer: TokenIssuer = request.app.state.token_issuer
    return issuer


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> str:
    """Return the ``userId`` claim of a valid bearer token."""
    if credentials is None:
        raise TokenRejected("missing bearer token")
    claims = issuer.decode(credentials.credentials)
    user_id = claims.get("userId")
    if not isinstance(user_id, str) or not user_id:
        raise TokenRejected("token carries no userId claim")
    return user_id


@router.post("/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    service: AccountService = Depends(get_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthResponse:
    """Register an account and return a session token for it."""
    registration = Registration(
        email=payload.email,
        password=payload.password,
        username=payload.username,
        profile=ProfileFields(
            display_name=payload.full_name,
            city=payload.city,
            region=payload.region,
            country=payload.country,
        ),
    )
    try:
        account = await service.register_account(registration)
    except DuplicateEmail:
        REGISTRATIONS.labels(outcome="duplicate_email").inc()
        raise
    except DuplicateUsername:
        REGISTRATIONS.labels(outcome="duplicate_username").inc()
        raise
    REGISTRATIONS.labels(outcome="created").inc()
    return AuthResponse(token=issuer.issue(account), account=AccountResponse.from_domain(account))


@router.post("/auth/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthResponse:
    """Exchange an email and password for a session token."""
    try:
        account = await service.authenticate(payload.email, payload.password)
    except AuthenticationFailure:
        LOGINS.labels(outcome="rejected").inc()
        raise
    LOGINS.labels(outcome="succeeded").inc()
    return AuthResponse(token=issuer.issue(account), account=AccountResponse.from_domain(account))


@router.get("/users/profile", response_model=AccountResponse)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    """Return the account identified by the bearer token."""
    return AccountResponse.from_domain(await service.get_account(user_id))


@router.get("/users/{account_id}", response_model=AccountResponse)
async def get_user(
    account_id: str,
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    """Retrieve an account by identifier."""
    return AccountResponse.from_domain(await service.get_account(account_id))
