import json

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.logging import get_logger
from core.security import get_current_active_user
from models.user import User
from schemas.broadcasting import ChannelAuthRequest, ChannelAuthResponse
from services.broadcast_service import authorize_channel, sign_channel

logger = get_logger(__name__)

router = APIRouter()


async def _read_auth_request(request: Request) -> ChannelAuthRequest:
    # Socket clients post form data by default; JSON is accepted too
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Malformed JSON body")
    else:
        form_data = await request.form()
        payload = {key: value for key, value in form_data.items()}
    try:
        return ChannelAuthRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors()[0]["msg"])


@router.post("/auth", response_model=ChannelAuthResponse, response_model_exclude_none=True)
async def authenticate_channel(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Sign a private or presence channel subscription for the socket server."""
    body = await _read_auth_request(request)
    allowed, member = await authorize_channel(db, current_user, body.channel_name)
    if not allowed:
        logger.info("Channel authorization denied", user_id=current_user.id, channel=body.channel_name)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    channel_data = None
    if member is not None:
        channel_data = json.dumps({"user_id": current_user.id, "user_info": member})
    return ChannelAuthResponse(
        auth=sign_channel(body.socket_id, body.channel_name, channel_data),
        channel_data=channel_data,
    )
