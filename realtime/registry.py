"""
In-process registry of live connections.

All state lives in this object and is only changed through its methods. None of
the mutating methods await, so each call runs to completion on the event loop
without interleaving with other connection events.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Set, Tuple

from constants import OUTBOUND_QUEUE_SIZE
from logging_config import get_logger
from schemas.chat import UserSummary

logger = get_logger(__name__)


@dataclass
class Connection:
    connection_id: str
    user: UserSummary
    outbox: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=OUTBOUND_QUEUE_SIZE))
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def user_id(self) -> str:
        return self.user.id


class ConnectionRegistry:
    def __init__(self):
        # user_id -> {connection_id}
        self._user_connections: Dict[str, Set[str]] = {}
        # connection_id -> Connection (reverse index)
        self._connections: Dict[str, Connection] = {}

    def register(self, user_id: str, connection_id: str, connection: Optional[Connection] = None) -> bool:
        """Add a connection for a user.

        Returns True when this is the user's first live connection. Registering
        an id that is already present is a no-op and returns False.
        """
        if connection_id in self._connections:
            logger.debug(f"Connection {connection_id} already registered, ignoring")
            return False

        if connection is None:
            connection = Connection(connection_id=connection_id, user=UserSummary(id=user_id, username=user_id))
        elif connection.connection_id != connection_id or connection.user_id != user_id:
            raise ValueError("Connection does not match the given user and connection ids")

        user_set = self._user_connections.setdefault(user_id, set())
        is_first = not user_set
        user_set.add(connection_id)
        self._connections[connection_id] = connection
        logger.debug(f"Registered connection {connection_id} for user {user_id} (connections: {len(user_set)})")
        return is_first

    def unregister(self, connection_id: str) -> Tuple[Optional[str], bool]:
        """Remove a connection.

        Returns (user_id, was_last). Unknown ids return (None, False).
        """
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return None, False

        user_id = connection.user_id
        user_set = self._user_connections.get(user_id)
        was_last = False
        if user_set is not None:
            user_set.discard(connection_id)
            if not user_set:
                del self._user_connections[user_id]
                was_last = True
        logger.debug(f"Unregistered connection {connection_id} for user {user_id} (last: {was_last})")
        return user_id, was_last

    def is_online(self, user_id: str) -> bool:
        return bool(self._user_connections.get(user_id))

    def connections_for(self, user_id: str) -> Set[str]:
        # Copy so callers can iterate while the registry changes
        return set(self._user_connections.get(user_id, ()))

    def connection_count(self, user_id: str) -> int:
        return len(self._user_connections.get(user_id, ()))

    def online_users(self) -> Set[str]:
        return set(self._user_connections)

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)
