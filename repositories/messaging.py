import logging
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.messaging import Conversation, Message
from repositories.base import BaseRepository
from schemas.messaging import ConversationCreate
from services.helpers import utcnow

logger = logging.getLogger(__name__)


class ConversationRepository(BaseRepository[Conversation, ConversationCreate, ConversationCreate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Conversation, db_session)
        self.db_session = db_session

    async def for_user(self, user_id: int) -> List[Conversation]:
        """Conversations the user takes part in, latest activity first."""
        result = await self.db_session.execute(
            select(Conversation)
            .where(or_(Conversation.driver_id == user_id, Conversation.expert_id == user_id))
            .order_by(
                Conversation.last_message_at.desc().nulls_last(),
                Conversation.created_at.desc(),
                Conversation.id.desc(),
            )
        )
        return list(result.scalars().all())

    async def get_by_pair(self, driver_id: int, expert_id: int) -> Optional[Conversation]:
        result = await self.db_session.execute(
            select(Conversation).where(
                Conversation.driver_id == driver_id,
                Conversation.expert_id == expert_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, driver_id: int, expert_id: int, lead_id: Optional[int] = None) -> Conversation:
        conversation = await self.get_by_pair(driver_id, expert_id)
        if conversation:
            if lead_id and not conversation.lead_id:
                conversation = await self.update(conversation, {"lead_id": lead_id})
            return conversation
        conversation = await self.create(
            {"driver_id": driver_id, "expert_id": expert_id, "lead_id": lead_id, "is_active": True}
        )
        logger.info(f"Opened conversation {conversation.id} between driver {driver_id} and expert {expert_id}")
        return conversation


class MessageRepository(BaseRepository[Message, ConversationCreate, ConversationCreate]):
    def __init__(self, db_session: AsyncSession):
        super().__init__(Message, db_session)
        self.db_session = db_session

    async def page_for_conversation(
        self, conversation_id: int, page: int, per_page: int
    ) -> Tuple[List[Message], int]:
        query = (
            select(Message)
            .where(Message.conversation_id == conversation_id, Message.deleted_at.is_(None))
            .order_by(Message.created_at.desc(), Message.id.desc())
        )
        return await self.paginate(query, page, per_page)

    async def latest_by_conversation(self, conversation_ids: Sequence[int]) -> Dict[int, Message]:
        if not conversation_ids:
            return {}
        latest_ids = (
            select(func.max(Message.id))
            .where(Message.conversation_id.in_(list(conversation_ids)), Message.deleted_at.is_(None))
            .group_by(Message.conversation_id)
        )
        result = await self.db_session.execute(select(Message).where(Message.id.in_(latest_ids)))
        return {message.conversation_id: message for message in result.scalars().all()}

    async def unread_by_conversation(self, user_id: int, conversation_ids: Sequence[int]) -> Dict[int, int]:
        if not conversation_ids:
            return {}
        result = await self.db_session.execute(
            select(Message.conversation_id, func.count(Message.id))
            .where(
                Message.conversation_id.in_(list(conversation_ids)),
                Message.sender_id != user_id,
                Message.read_at.is_(None),
                Message.deleted_at.is_(None),
            )
            .group_by(Message.conversation_id)
        )
        return dict(result.all())

    async def unread_total(self, user_id: int) -> int:
        result = await self.db_session.execute(
            select(func.count(Message.id))
            .join(Conversation, Conversation.id == Message.conversation_id)
            .where(
                or_(Conversation.driver_id == user_id, Conversation.expert_id == user_id),
                Message.sender_id != user_id,
                Message.read_at.is_(None),
                Message.deleted_at.is_(None),
            )
        )
        return result.scalar_one()

    async def mark_read(self, conversation_id: int, reader_id: int) -> int:
        """Mark the other participant's unread messages as read."""
        result = await self.db_session.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.sender_id != reader_id,
                Message.read_at.is_(None),
                Message.deleted_at.is_(None),
            )
            .values(read_at=utcnow())
        )
        await self.db_session.commit()
        return result.rowcount
