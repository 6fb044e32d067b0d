"""
PayMaster - Payroll Write Lock

Serializes operations that write payroll runs and entries
(generation, recalculation, vacation attach).

Within one process an asyncio.Lock per event loop orders writers. On
PostgreSQL a transaction-scoped advisory lock extends this across
processes; it is released when the writer's transaction commits or rolls
back. The unique start date on payroll_runs backs both.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


PAYROLL_ADVISORY_LOCK_KEY = 0x5041594D

_process_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]" = (
    weakref.WeakKeyDictionary()
)


def _process_lock() -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    lock = _process_locks.get(loop)
    if lock is None:
        lock = asyncio.Lock()
        _process_locks[loop] = lock
    return lock


def _is_postgres(db: AsyncSession) -> bool:
    return db.get_bind().dialect.name == "postgresql"


@asynccontextmanager
async def payroll_write_lock(db: AsyncSession) -> AsyncIterator[None]:
    """Hold payroll write exclusivity for the duration of the block."""
    async with _process_lock():
        postgres = _is_postgres(db)
        if postgres:
            await db.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": PAYROLL_ADVISORY_LOCK_KEY},
            )
        try:
            yield
        finally:
            # Release the advisory lock if the block left its transaction open
            if postgres and db.in_transaction():
                await db.rollback()
