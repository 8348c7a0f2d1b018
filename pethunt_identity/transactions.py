"""Unit-of-work scoping over the psycopg connection pool."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import AsyncIterator, Callable, TypeVar

import anyio
import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool

from .domain.errors import StoreError, TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransactionCoordinator:
    """Runs blocking repository work atomically on worker threads.

    A unit of work checks one connection out of the pool, commits when the
    block exits normally and rolls back on any exception. Opening a unit of
    work while one is already active in the current task reuses it.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool
        self._active: ContextVar[Connection | None] = ContextVar(
            f"unit_of_work_{id(self)}", default=None
        )

    @property
    def in_transaction(self) -> bool:
        return self._active.get() is not None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Connection]:
        """Open (or join) a unit of work and yield its connection."""
        current = self._active.get()
        if current is not None:
            yield current
            return

        conn = await self._call(self._pool.getconn)
        token = self._active.set(conn)
        try:
            try:
                yield conn
            except BaseException:
                await self._rollback(conn)
                raise
            await self._call(conn.commit)
        finally:
            self._active.reset(token)
            with anyio.CancelScope(shield=True):
                await anyio.to_thread.run_sync(self._pool.putconn, conn)

    async def run(self, work: Callable[[Connection], T]) -> T:
        """Execute ``work(connection)`` off the event loop inside a unit of work."""
        async with self.transaction() as conn:
            return await self._call(work, conn)

    async def _call(self, func: Callable[..., T], *args) -> T:
        try:
            return await anyio.to_thread.run_sync(func, *args)
        except psycopg.OperationalError as exc:
            raise TransientStoreError(str(exc)) from exc
        except psycopg.Error as exc:
            raise StoreError(str(exc)) from exc

    async def _rollback(self, conn: Connection) -> None:
        try:
            with anyio.CancelScope(shield=True):
                await anyio.to_thread.run_sync(conn.rollback)
        except psycopg.Error as exc:
            logger.warning("rollback failed; connection will be discarded by the pool: %s", exc)
