from fastapi import APIRouter, Request

from logging_config import get_logger
from schemas.presence import OnlineUsersResponse, PresenceResponse

logger = get_logger(__name__)

presence_router = APIRouter(prefix="/presence", tags=["presence"])


@presence_router.get("/", response_model=OnlineUsersResponse)
async def list_online_users(request: Request):
    """Users with at least one live connection on this instance."""
    registry = request.app.state.hub.registry
    online_users = sorted(registry.online_users())
    logger.debug(f"Online users requested: {len(online_users)} online")
    return OnlineUsersResponse(online_users_count=len(online_users), online_users=online_users)


@presence_router.get("/{user_id}", response_model=PresenceResponse)
async def get_user_presence(user_id: str, request: Request):
    # Derived from live connections only; the stored is_online flag may lag behind
    registry = request.app.state.hub.registry
    return PresenceResponse(
        user_id=user_id,
        is_online=registry.is_online(user_id),
        connection_count=registry.connection_count(user_id),
    )
