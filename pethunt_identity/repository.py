"""Database repository for account data."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from psycopg import Connection
from psycopg.errors import UniqueViolation
from psycopg.rows import tuple_row

from .domain.account import Account, AccountCredentials, Role
from .domain.contracts import NewAccount
from .domain.errors import Conflict
from .transactions import TransactionCoordinator

logger = logging.getLogger(__name__)

EMAIL_INDEX = "ux_accounts_email"
USERNAME_INDEX = "ux_accounts_username"

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id UUID PRIMARY KEY,
        email VARCHAR(255) NOT NULL,
        username VARCHAR(50) NOT NULL,
        password_hash VARCHAR(255) NOT NULL CHECK (password_hash <> ''),
        display_name VARCHAR(100),
        city VARCHAR(100),
        region VARCHAR(100),
        country VARCHAR(100),
        role VARCHAR(20) NOT NULL DEFAULT 'user',
        active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        last_authenticated_at TIMESTAMPTZ
    )
    """,
    f"CREATE UNIQUE INDEX IF NOT EXISTS {EMAIL_INDEX} ON accounts (email)",
    f"CREATE UNIQUE INDEX IF NOT EXISTS {USERNAME_INDEX} ON accounts (username)",
)

ACCOUNT_COLUMNS = (
    "id, email, username, role, active, display_name, city, region, country, "
    "created_at, updated_at, last_authenticated_at"
)

_CONFLICT_FIELDS = {EMAIL_INDEX: "email", USERNAME_INDEX: "username"}


class AccountRepository:
    """Postgres-backed account persistence."""

    def __init__(self, transactions: TransactionCoordinator) -> None:
        """Store the coordinator that scopes every query to a unit of work."""
        self._transactions = transactions

    @property
    def transactions(self) -> TransactionCoordinator:
        return self._transactions

    async def ensure_schema(self) -> None:
        """Create the accounts table and its unique indexes when missing."""

        def work(conn: Connection) -> None:
            with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    cur.execute(statement)

        await self._transactions.run(work)
        logger.info("accounts schema ensured")

    async def create(self, candidate: NewAccount) -> Account:
        """Insert a new account, raising ``Conflict`` when email or username is taken."""
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        profile = candidate.profile

        def work(conn: Connection) -> Account:
            with conn.cursor(row_factory=tuple_row) as cur:
                try:
                    cur.execute(
                        f"""
                        INSERT INTO accounts (
                            id, email, username, password_hash, display_name, city, region,
                            country, role, active, created_at, updated_at
                        )
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING {ACCOUNT_COLUMNS}
                        """,
                        (
                            account_id,
                            candidate.email,
                            candidate.username,
                            candidate.credential_digest,
                            profile.display_name,
                            profile.city,
                            profile.region,
                            profile.country,
                            Role.user.value,
                            True,
                            now,
                            now,
                        ),
                    )
                except UniqueViolation as exc:
                    raise _conflict_from(exc) from exc
                return self._map_record(cur.fetchone())

        return await self._transactions.run(work)

    async def find_by_email(self, email: str) -> Account | None:
        return await self._find_one("email = %s", email)

    async def find_by_username(self, username: str) -> Account | None:
        return await self._find_one("username = %s", username)

    async def find_by_id(self, account_id: str) -> Account | None:
        """Fetch an account by identifier; identifiers that are not UUIDs never match."""
        try:
            parsed = uuid.UUID(account_id)
        except (TypeError, ValueError):
            return None
        return await self._find_one("id = %s", str(parsed))

    async def find_credentials_by_email(self, email: str) -> AccountCredentials | None:
        """Load an account and its stored credential digest in a single read."""

        def work(conn: Connection) -> AccountCredentials | None:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"SELECT {ACCOUNT_COLUMNS}, password_hash FROM accounts WHERE email = %s",
                    (email,),
                )
                row = cur.fetchone()
            if not row:
                return None
            return AccountCredentials(account=self._map_record(row[:-1]), credential_digest=row[-1])

        return await self._transactions.run(work)

    async def record_authentication(self, account_id: str, authenticated_at: datetime) -> bool:
        """Stamp ``last_authenticated_at`` with the given instant; report whether a row matched."""

        def work(conn: Connection) -> bool:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE accounts SET last_authenticated_at = %s WHERE id = %s",
                    (authenticated_at, account_id),
                )
                return cur.rowcount > 0

        return await self._transactions.run(work)

    async def _find_one(self, predicate: str, value: str) -> Account | None:
        def work(conn: Connection) -> Account | None:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {ACCOUNT_COLUMNS} FROM accounts WHERE {predicate}", (value,))
                row = cur.fetchone()
            if not row:
                return None
            return self._map_record(row)

        return await self._transactions.run(work)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            id=str(row[0]),
            email=row[1],
            username=row[2],
            role=Role(row[3]),
            active=row[4],
            display_name=row[5],
            city=row[6],
            region=row[7],
            country=row[8],
            created_at=row[9],
            updated_at=row[10],
            last_authenticated_at=row[11],
        )


def _conflict_from(exc: UniqueViolation) -> Conflict:
    """Name the column whose unique index rejected the insert."""
    constraint = exc.diag.constraint_name
    if constraint in _CONFLICT_FIELDS:
        return Conflict(_CONFLICT_FIELDS[constraint])
    message = str(exc)
    for index, field in _CONFLICT_FIELDS.items():
        if index in message or f"({field})" in message:
            return Conflict(field)
    logger.error("unique violation on unrecognised constraint %s", constraint)
    return Conflict("unknown")
