import asyncio
from typing import Optional

import jwt

from constants import AUTH_TIMEOUT_SECONDS
from logging_config import get_logger
from realtime.collaborators import ChatStore, TokenVerifier
from realtime.errors import AuthTimeout, InvalidToken, MissingToken, PersistenceError
from schemas.chat import UserSummary

logger = get_logger(__name__)


class ConnectionGateway:
    """Authenticates a live connection once, at open time."""

    def __init__(self, tokens: TokenVerifier, store: ChatStore, timeout: float = AUTH_TIMEOUT_SECONDS):
        self.tokens = tokens
        self.store = store
        self.timeout = timeout

    async def admit(self, token: Optional[str]) -> UserSummary:
        """Resolve a bearer token to the connecting user's identity.

        Raises MissingToken, InvalidToken or AuthTimeout. There is no retry;
        the client is expected to reconnect.
        """
        if not token or not token.strip():
            logger.info("Connection rejected: no token provided")
            raise MissingToken()

        try:
            return await asyncio.wait_for(self._resolve(token.strip()), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Connection rejected: authentication did not finish within {self.timeout}s")
            raise AuthTimeout()

    async def _resolve(self, token: str) -> UserSummary:
        try:
            claims = self.tokens.verify(token)
        except jwt.PyJWTError as e:
            logger.info(f"Connection rejected: token verification failed: {e}")
            raise InvalidToken() from e

        user_id = str(claims["userId"])
        try:
            user = await self.store.find_user_by_id(user_id)
        except PersistenceError as e:
            logger.error(f"Connection rejected: could not load user {user_id}: {e}")
            raise InvalidToken() from e

        if user is None:
            logger.info(f"Connection rejected: user {user_id} no longer exists")
            raise InvalidToken()
        return user
