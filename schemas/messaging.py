from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.messaging import MessageType


class ConversationCreate(BaseModel):
    user_id: int = Field(..., description="The other participant")
    lead_id: Optional[int] = None


class ConversationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    lead_id: Optional[int] = None
    driver_id: int
    expert_id: int
    last_message_at: Optional[datetime] = None
    is_active: bool
    created_at: Optional[datetime] = None


class ConversationSummary(ConversationRead):
    other_user: Optional[Dict[str, Any]] = None
    last_message: Optional["MessageRead"] = None
    unread_count: int = 0


class MessageCreate(BaseModel):
    content: Optional[str] = Field(None, max_length=5000)
    type: MessageType = MessageType.TEXT
    metadata: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def check_content(self):
        if self.type == MessageType.SYSTEM:
            raise ValueError("System messages cannot be sent by users")
        if self.type == MessageType.LOCATION:
            meta = self.metadata or {}
            if meta.get("latitude") is None or meta.get("longitude") is None:
                raise ValueError("Location messages require latitude and longitude")
        if self.type == MessageType.TEXT and not (self.content and self.content.strip()):
            raise ValueError("Message content is required")
        return self


class MessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    conversation_id: int
    sender_id: int
    content: str
    type: MessageType
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_")
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TypingRequest(BaseModel):
    is_typing: bool = True


ConversationSummary.model_rebuild()
