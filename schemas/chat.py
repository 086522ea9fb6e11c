from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MessageType = Literal["TEXT", "IMAGE", "FILE", "AUDIO", "VIDEO"]


class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class UserSummary(CamelModel):
    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    is_online: bool = False
    last_seen: Optional[datetime] = None


class SenderSummary(CamelModel):
    id: str
    username: str
    avatar: Optional[str] = None


class MessageCreate(CamelModel):
    sender_id: str
    chat_id: str
    receiver_id: Optional[str] = None
    content: Optional[str] = None
    type: MessageType = "TEXT"
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)


class Message(CamelModel):
    id: str
    chat_id: str
    sender_id: str
    receiver_id: Optional[str] = None
    content: Optional[str] = None
    type: MessageType = "TEXT"
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    is_read: bool = False
    created_at: datetime
    updated_at: datetime
    sender: Optional[SenderSummary] = None
