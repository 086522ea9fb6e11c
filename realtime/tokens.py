from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from constants import JWT_ALGORITHM, JWT_EXPIRES_SECONDS, JWT_SECRET
from logging_config import get_logger

logger = get_logger(__name__)


class JWTTokenService:
    """HS256 bearer tokens carrying the user id in a `userId` claim."""

    def __init__(self, secret: str = JWT_SECRET, algorithm: str = JWT_ALGORITHM):
        self.secret = secret
        self.algorithm = algorithm

    def issue(self, user_id: str, expires_in: Optional[timedelta] = None) -> str:
        expires_in = expires_in if expires_in is not None else timedelta(seconds=JWT_EXPIRES_SECONDS)
        now = datetime.now(timezone.utc)
        payload = {"userId": user_id, "iat": now, "exp": now + expires_in}
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        logger.debug(f"Issued token for user {user_id}")
        return token

    def verify(self, token: str) -> Dict[str, Any]:
        """Decode and check signature and expiry.

        Raises jwt.PyJWTError on any verification failure, including a token
        without a `userId` claim.
        """
        payload = jwt.decode(
            token,
            self.secret,
            algorithms=[self.algorithm],
            options={"require": ["exp"]},
        )
        if not payload.get("userId"):
            raise jwt.InvalidTokenError("Token has no userId claim")
        return payload
