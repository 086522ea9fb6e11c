"""
Online/offline transitions.

Transitions come only from the registry's first/last connection edges, so a user
switching between one and two devices never produces presence events. The
broadcast is queued synchronously at the edge; the storage write follows and is
best effort and bounded by a timeout.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, Optional

from constants import PRESENCE_WRITE_TIMEOUT_SECONDS
from logging_config import get_logger
from realtime.collaborators import ChatStore
from realtime.delivery import LiveDelivery
from realtime.errors import PersistenceError
from schemas.chat import UserSummary
from schemas.events import user_offline_event, user_online_event

logger = get_logger(__name__)


class PresenceTracker:
    def __init__(self, store: ChatStore, delivery: LiveDelivery, timeout: float = PRESENCE_WRITE_TIMEOUT_SECONDS):
        self.store = store
        self.delivery = delivery
        self.timeout = timeout
        # Serialises storage writes per user so they land in edge order
        self._write_locks: Dict[str, asyncio.Lock] = {}
        self._pending_writes: Dict[str, int] = {}

    async def on_connection_registered(self, user: UserSummary, is_first: bool) -> None:
        if not is_first:
            return

        online_user = user.model_copy(update={"is_online": True})
        sent = self.delivery.broadcast_except_user(user.id, user_online_event(online_user))
        logger.info(f"User {user.username} ({user.id}) is online, notified {sent} connections")

        await self._persist(user.id, True)

    async def on_connection_removed(self, user_id: str, was_last: bool) -> Optional[datetime]:
        """Returns the last-seen time written when the user went offline."""
        if not was_last:
            return None

        last_seen = datetime.now(timezone.utc)
        sent = self.delivery.broadcast_except_user(user_id, user_offline_event(user_id, last_seen))
        logger.info(f"User {user_id} is offline, notified {sent} connections")

        await self._persist(user_id, False, last_seen)
        return last_seen

    async def _persist(self, user_id: str, is_online: bool, last_seen: Optional[datetime] = None) -> None:
        lock = self._write_locks.setdefault(user_id, asyncio.Lock())
        self._pending_writes[user_id] = self._pending_writes.get(user_id, 0) + 1
        try:
            await asyncio.wait_for(self._write(lock, user_id, is_online, last_seen), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Presence write for user {user_id} (online={is_online}) did not finish within {self.timeout}s")
        except PersistenceError as e:
            logger.error(f"Failed to persist presence for user {user_id} (online={is_online}): {e}")
        finally:
            self._pending_writes[user_id] -= 1
            if not self._pending_writes[user_id]:
                del self._pending_writes[user_id]
                del self._write_locks[user_id]

    async def _write(self, lock: asyncio.Lock, user_id: str, is_online: bool, last_seen: Optional[datetime]) -> None:
        async with lock:
            await self.store.update_user_presence(user_id, is_online, last_seen)
