"""
Per-account mutual exclusion for in-process callers.

Each account id maps to its own asyncio.Lock, so transfers touching
different accounts never wait on each other while transfers sharing an
account run one at a time.

Deadlock prevention:
  A transfer may need two locks (source and target). They are always
  acquired in sorted UUID order, so two transfers A->B and B->A both lock
  min(A, B) first and cannot each hold the lock the other is waiting for.

Locks live in a WeakValueDictionary: once no task holds or waits on an
account's lock it is garbage-collected, so the registry doesn't grow with
the number of accounts ever touched.
"""

import asyncio
import uuid
import weakref
from contextlib import AsyncExitStack, asynccontextmanager


class AccountLockRegistry:
    """Hands out one asyncio.Lock per account id."""

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, account_id: uuid.UUID) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *account_ids: uuid.UUID):
        """
        Hold the locks of every given account for the duration of the block.

        Duplicate ids are collapsed; locks are taken in ascending id order
        and released in reverse.
        """
        async with AsyncExitStack() as stack:
            for account_id in sorted(set(account_ids)):
                await stack.enter_async_context(self.lock_for(account_id))
            yield

    def is_locked(self, account_id: uuid.UUID) -> bool:
        lock = self._locks.get(account_id)
        return lock is not None and lock.locked()
