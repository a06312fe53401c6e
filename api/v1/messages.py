from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.exceptions import NotParticipantError
from core.security import get_current_active_user
from models.user import User
from repositories.messaging import ConversationRepository, MessageRepository
from schemas.messaging import ConversationCreate, ConversationRead, MessageCreate, MessageRead, TypingRequest
from schemas.responses import PaginatedData, StandardSuccessResponse
from services.broadcast_service import Broadcaster, get_broadcaster
from services.helpers import utcnow
from services.messaging_service import (
    ensure_participant,
    mark_read,
    pair_for,
    publish_typing,
    send_message,
    summaries,
)

router = APIRouter()


async def _conversation_for(db: AsyncSession, conversation_id: int, user: User):
    return ensure_participant(await ConversationRepository(db).get(conversation_id), user)


@router.get("/conversations", response_model=StandardSuccessResponse)
async def list_conversations(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    return {"success": True, "message": "Success", "data": await summaries(db, current_user)}


@router.post("/conversations", response_model=StandardSuccessResponse)
async def start_conversation(
    body: ConversationCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    other = await db.get(User, body.user_id)
    if not other or not other.is_active:
        raise HTTPException(status_code=404, detail="User not found")

    pair = pair_for(current_user, other)
    if pair is None:
        raise HTTPException(status_code=400, detail="Conversations can only be between drivers and experts")

    conversation = await ConversationRepository(db).get_or_create(*pair, lead_id=body.lead_id)
    return {"success": True, "message": "Success", "data": ConversationRead.model_validate(conversation)}


@router.get("/conversations/{conversation_id}", response_model=StandardSuccessResponse)
async def conversation_messages(
    conversation_id: int,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await _conversation_for(db, conversation_id, current_user)
    rows, total = await MessageRepository(db).page_for_conversation(conversation.id, page, per_page)
    items = [MessageRead.model_validate(m) for m in rows]
    return {"success": True, "message": "Success", "data": PaginatedData.create(items, total, page, per_page)}


@router.post("/conversations/{conversation_id}", response_model=StandardSuccessResponse, status_code=status.HTTP_201_CREATED)
async def post_message(
    conversation_id: int,
    body: MessageCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    conversation = await _conversation_for(db, conversation_id, current_user)
    message = await send_message(db, conversation, current_user, body, broadcaster)
    return {"success": True, "message": "Message sent", "data": MessageRead.model_validate(message)}


@router.post("/conversations/{conversation_id}/read", response_model=StandardSuccessResponse)
async def read_conversation(
    conversation_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    conversation = await _conversation_for(db, conversation_id, current_user)
    count = await mark_read(db, conversation, current_user, broadcaster)
    return {"success": True, "message": "Messages marked as read", "data": {"read_count": count}}


@router.post("/conversations/{conversation_id}/typing", response_model=StandardSuccessResponse)
async def typing(
    conversation_id: int,
    body: TypingRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    conversation = await _conversation_for(db, conversation_id, current_user)
    await publish_typing(conversation, current_user, body.is_typing, broadcaster)
    return {"success": True, "message": "Success"}


@router.get("/unread-count", response_model=StandardSuccessResponse)
async def unread_count(current_user: User = Depends(get_current_active_user), db: AsyncSession = Depends(get_db)):
    total = await MessageRepository(db).unread_total(current_user.id)
    return {"success": True, "message": "Success", "data": {"unread_count": total}}


@router.delete("/{message_id}", response_model=StandardSuccessResponse)
async def delete_message(
    message_id: int,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    message = await MessageRepository(db).get(message_id)
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    if message.sender_id != current_user.id:
        raise NotParticipantError("You can only delete your own messages")

    await MessageRepository(db).update(message, {"deleted_at": utcnow()})
    return {"success": True, "message": "Message deleted"}
