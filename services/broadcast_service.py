"""
Real-time broadcasting.

Events are published to Redis as ``{"event", "data", "socket"}`` on a
channel named after the private/presence channel, which a Pusher-compatible
socket server relays to subscribed clients. Subscriptions are authorised by
``authorize_channel`` and signed with ``sign_channel``.
"""

import hashlib
import hmac
import json
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.logging import get_logger
from models.diagnosis import Diagnosis
from models.lead import Lead
from models.messaging import Conversation
from models.user import User

logger = get_logger(__name__)

PRESENCE_ONLINE = "presence-online"

_CHANNEL_PATTERN = re.compile(r"^private-(user|conversation|expert|diagnosis|lead)\.(\d+)$")


def user_channel(user_id: int) -> str:
    return f"private-user.{user_id}"


def conversation_channel(conversation_id: int) -> str:
    return f"private-conversation.{conversation_id}"


def expert_channel(user_id: int) -> str:
    return f"private-expert.{user_id}"


def diagnosis_channel(diagnosis_id: int) -> str:
    return f"private-diagnosis.{diagnosis_id}"


def lead_channel(lead_id: int) -> str:
    return f"private-lead.{lead_id}"


def _redis_channel(channel: str) -> str:
    return f"{settings.BROADCAST_CHANNEL_PREFIX}:{channel}"


def _payload(channel: str, event: str, data: Dict[str, Any]) -> str:
    return json.dumps({"channel": channel, "event": event, "data": data, "socket": None}, default=str)


class Broadcaster:
    """Publishes events to the async Redis client."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from core.redis import async_conn

            self._client = async_conn
        return self._client

    async def publish(self, channels: Iterable[str], event: str, data: Dict[str, Any]) -> None:
        for channel in channels:
            await self.client.publish(_redis_channel(channel), _payload(channel, event, data))
            logger.info("Broadcast event published", channel=channel, broadcast_event=event)


class SyncBroadcaster:
    """Same contract as ``Broadcaster`` for Celery workers."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from core.redis import conn

            self._client = conn
        return self._client

    def publish(self, channels: Iterable[str], event: str, data: Dict[str, Any]) -> None:
        for channel in channels:
            self.client.publish(_redis_channel(channel), _payload(channel, event, data))
            logger.info("Broadcast event published", channel=channel, broadcast_event=event)


broadcaster = Broadcaster()


def get_broadcaster() -> Broadcaster:
    return broadcaster


def sign_channel(socket_id: str, channel_name: str, channel_data: Optional[str] = None) -> str:
    """Pusher-style ``key:signature`` for a channel subscription."""
    parts = [socket_id, channel_name]
    if channel_data is not None:
        parts.append(channel_data)
    signature = hmac.new(
        settings.BROADCAST_SECRET.encode(),
        ":".join(parts).encode(),
        hashlib.sha256,
    ).hexdigest()
    return f"{settings.BROADCAST_KEY}:{signature}"


def presence_member(user: User) -> Dict[str, Any]:
    return {"id": user.id, "name": user.full_name, "role": user.role.value}


async def _conversation_allows(db: AsyncSession, user: User, conversation_id: int) -> bool:
    conversation = await db.get(Conversation, conversation_id)
    return bool(conversation and conversation.has_participant(user.id))


async def _diagnosis_allows(db: AsyncSession, user: User, diagnosis_id: int) -> bool:
    diagnosis = await db.get(Diagnosis, diagnosis_id)
    if not diagnosis:
        return False
    if diagnosis.user_id == user.id:
        return True
    if not user.is_expert:
        return False
    result = await db.execute(
        select(Lead.id).where(Lead.diagnosis_id == diagnosis_id, Lead.expert_id == user.id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _lead_allows(db: AsyncSession, user: User, lead_id: int) -> bool:
    lead = await db.get(Lead, lead_id)
    return bool(lead and user.id in (lead.expert_id, lead.driver_id))


async def authorize_channel(db: AsyncSession, user: User, channel_name: str) -> Tuple[bool, Optional[Dict[str, Any]]]:
    """Return whether ``user`` may join the channel and, for presence channels, its member info."""
    if channel_name == PRESENCE_ONLINE:
        return True, presence_member(user)

    match = _CHANNEL_PATTERN.match(channel_name)
    if not match:
        return False, None

    kind, raw_id = match.group(1), int(match.group(2))
    if kind == "user":
        return user.id == raw_id, None
    if kind == "expert":
        return user.id == raw_id and user.is_expert, None
    if kind == "conversation":
        return await _conversation_allows(db, user, raw_id), None
    if kind == "diagnosis":
        return await _diagnosis_allows(db, user, raw_id), None
    return await _lead_allows(db, user, raw_id), None


def lead_event_payload(lead: Lead, diagnosis: Diagnosis) -> Dict[str, Any]:
    return {
        "lead_id": lead.id,
        "uuid": lead.uuid,
        "diagnosis_id": diagnosis.id,
        "symptoms": diagnosis.symptoms_description[:200],
        "is_free_lead": lead.is_free_lead,
        "created_at": lead.created_at,
    }


def diagnosis_event_channels(diagnosis: Diagnosis) -> List[str]:
    channels = [diagnosis_channel(diagnosis.id)]
    if diagnosis.user_id:
        channels.insert(0, user_channel(diagnosis.user_id))
    return channels
