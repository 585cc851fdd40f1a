import asyncio
import logging
from typing import Awaitable, Callable, Dict

from ewelink_nodes.cloud.session import EwelinkSession
from ewelink_nodes.credentials import EwelinkCredentials

logger = logging.getLogger(__name__)

Connector = Callable[[EwelinkCredentials], Awaitable[EwelinkSession]]


class ConnectionCache:
    """Single-flight cache of authenticated eWeLink sessions.

    Entries are keyed by credentials value. The first acquire() for a key
    starts the login as a task and stores it before yielding, so every
    concurrent caller awaits the same task and the connector runs once.
    """

    def __init__(self, connector: Connector, evict_on_failure: bool = True):
        self.connector = connector
        self.evict_on_failure = evict_on_failure
        self._entries: Dict[EwelinkCredentials, asyncio.Task] = {}

        self.stats = {
            "connect_attempts": 0,
            "failed_connections": 0,
            "hits": 0,
        }

    async def acquire(self, credentials: EwelinkCredentials) -> EwelinkSession:
        """Get the session for these credentials, logging in if needed.

        Raises:
            Whatever the connector raised. Every waiter on the same login sees
            the same exception.
        """
        entry = self._entries.get(credentials)
        if entry is None:
            entry = self._start_connect(credentials)
        else:
            self.stats["hits"] += 1

        # a cancelled waiter must not cancel the login the others wait on
        return await asyncio.shield(entry)

    def _start_connect(self, credentials: EwelinkCredentials) -> asyncio.Task:
        logger.debug(f"Starting login for {credentials.account}")
        task = asyncio.get_running_loop().create_task(self._connect(credentials))
        task.add_done_callback(lambda t: self._on_connect_done(credentials, t))
        self._entries[credentials] = task
        self.stats["connect_attempts"] += 1
        return task

    async def _connect(self, credentials: EwelinkCredentials) -> EwelinkSession:
        return await self.connector(credentials)

    def _on_connect_done(self, credentials: EwelinkCredentials, task: asyncio.Task):
        if task.cancelled():
            self._evict(credentials, task)
            return

        error = task.exception()
        if error is None:
            logger.info(f"Session ready for {credentials.account}")
            return

        self.stats["failed_connections"] += 1
        if self.evict_on_failure:
            logger.warning(f"Login failed for {credentials.account}, next request retries: {error}")
            self._evict(credentials, task)
        else:
            logger.error(f"Login failed for {credentials.account}: {error}")

    def _evict(self, credentials: EwelinkCredentials, task: asyncio.Task):
        # only drop the entry if it has not been replaced meanwhile
        if self._entries.get(credentials) is task:
            del self._entries[credentials]

    def is_ready(self, credentials: EwelinkCredentials) -> bool:
        """True if a session for these credentials is available without waiting."""
        entry = self._entries.get(credentials)
        return (
            entry is not None
            and entry.done()
            and not entry.cancelled()
            and entry.exception() is None
        )

    def invalidate(self, credentials: EwelinkCredentials) -> bool:
        """Forget the entry for these credentials; the next acquire logs in again."""
        entry = self._entries.pop(credentials, None)
        if entry is None:
            return False
        logger.info(f"Invalidated session for {credentials.account}")
        return True

    def get_stats(self) -> Dict:
        return {
            **self.stats,
            "entries": len(self._entries),
            "ready": sum(1 for c in self._entries if self.is_ready(c)),
        }

    async def close(self):
        """Cancel pending logins and drop every entry."""
        pending = [task for task in self._entries.values() if not task.done()]
        self._entries.clear()
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Connection cache closed")
