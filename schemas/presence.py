from pydantic import BaseModel


class PresenceResponse(BaseModel):
    user_id: str
    is_online: bool
    connection_count: int


class OnlineUsersResponse(BaseModel):
    online_users_count: int
    online_users: list[str]


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    connections: int
    storage: str
