from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotParticipantError
from core.logging import get_logger
from models.messaging import Conversation, Message, MessageType
from models.user import User, UserRole
from repositories.messaging import ConversationRepository, MessageRepository
from schemas.messaging import ConversationSummary, MessageCreate, MessageRead
from services.broadcast_service import Broadcaster, conversation_channel
from services.helpers import utcnow

logger = get_logger(__name__)

DEFAULT_CONTENT = {
    MessageType.LOCATION: "[Location shared]",
    MessageType.IMAGE: "[Image]",
    MessageType.VOICE: "[Voice message]",
}


def ensure_participant(conversation: Optional[Conversation], user: User) -> Conversation:
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    if not conversation.has_participant(user.id):
        raise NotParticipantError()
    return conversation


def pair_for(user: User, other: User):
    """Return ``(driver_id, expert_id)`` or ``None`` when the roles don't pair up."""
    roles = {user.role, other.role}
    if roles != {UserRole.DRIVER, UserRole.EXPERT}:
        return None
    if user.is_driver:
        return user.id, other.id
    return other.id, user.id


async def summaries(db: AsyncSession, user: User) -> List[ConversationSummary]:
    conversations = await ConversationRepository(db).for_user(user.id)
    ids = [c.id for c in conversations]
    messages = MessageRepository(db)
    latest = await messages.latest_by_conversation(ids)
    unread = await messages.unread_by_conversation(user.id, ids)

    other_ids = {c.other_participant_id(user.id) for c in conversations}
    others = {}
    for other_id in other_ids:
        other = await db.get(User, other_id)
        if other:
            others[other_id] = {
                "id": other.id,
                "name": other.full_name,
                "avatar": other.avatar,
                "role": other.role.value,
            }

    items = []
    for conversation in conversations:
        summary = ConversationSummary.model_validate(conversation)
        summary.other_user = others.get(conversation.other_participant_id(user.id))
        last = latest.get(conversation.id)
        summary.last_message = MessageRead.model_validate(last) if last else None
        summary.unread_count = unread.get(conversation.id, 0)
        items.append(summary)
    return items


async def send_message(
    db: AsyncSession,
    conversation: Conversation,
    sender: User,
    data: MessageCreate,
    broadcaster: Broadcaster,
) -> Message:
    content = (data.content or "").strip() or DEFAULT_CONTENT.get(data.type, "")
    try:
        message = Message(
            conversation_id=conversation.id,
            sender_id=sender.id,
            content=content,
            type=data.type,
            metadata_=data.metadata,
        )
        db.add(message)
        conversation.last_message_at = utcnow()
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(message)

    payload = MessageRead.model_validate(message).model_dump(mode="json")
    payload["sender_name"] = sender.full_name
    await broadcaster.publish([conversation_channel(conversation.id)], "message.new", payload)
    logger.info("Message sent", conversation_id=conversation.id, message_id=message.id, sender_id=sender.id)
    return message


async def mark_read(
    db: AsyncSession,
    conversation: Conversation,
    reader: User,
    broadcaster: Broadcaster,
) -> int:
    count = await MessageRepository(db).mark_read(conversation.id, reader.id)
    if count:
        await broadcaster.publish(
            [conversation_channel(conversation.id)],
            "message.read",
            {"conversation_id": conversation.id, "reader_id": reader.id, "read_at": utcnow().isoformat()},
        )
    return count


async def publish_typing(conversation: Conversation, user: User, is_typing: bool, broadcaster: Broadcaster):
    await broadcaster.publish(
        [conversation_channel(conversation.id)],
        "user.typing",
        {
            "conversation_id": conversation.id,
            "user_id": user.id,
            "name": user.full_name,
            "is_typing": is_typing,
        },
    )
