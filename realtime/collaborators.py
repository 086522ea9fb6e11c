"""
Contracts of the services the live layer depends on.

The hub only talks to storage and token verification through these protocols;
`backend.RedisBackend` and `realtime.tokens.JWTTokenService` are the production
implementations.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from schemas.chat import Message, MessageCreate, UserSummary


class ChatStore(Protocol):
    async def find_user_by_id(self, user_id: str) -> Optional[UserSummary]: ...

    async def is_chat_member(self, user_id: str, chat_id: str) -> bool: ...

    async def list_chat_members(self, chat_id: str) -> List[str]: ...

    async def create_message(self, data: MessageCreate) -> Message: ...

    async def update_chat_timestamp(self, chat_id: str) -> None: ...

    async def update_user_presence(self, user_id: str, is_online: bool, last_seen: Optional[datetime] = None) -> None: ...

    async def find_message_by_id(self, message_id: str) -> Optional[Message]: ...

    async def update_message_read_flag(self, message_id: str) -> Optional[Message]: ...


class TokenVerifier(Protocol):
    def verify(self, token: str) -> Dict[str, Any]: ...
