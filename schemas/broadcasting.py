from typing import Optional
from pydantic import BaseModel, Field


class ChannelAuthRequest(BaseModel):
    socket_id: str = Field(..., pattern=r"^\d+\.\d+$")
    channel_name: str = Field(..., max_length=200)


class ChannelAuthResponse(BaseModel):
    auth: str
    channel_data: Optional[str] = None
