import redis
import redis.asyncio as aioredis

from core.config import settings

BROADCAST_EVENTS_CHANNEL = f"{settings.BROADCAST_CHANNEL_PREFIX}:broadcast"

# Sync client for Celery workers
conn = redis.Redis.from_url(
    settings.REDIS_URL,
    decode_responses=True  # returns strings instead of bytes
)

# Async client for the API process
async_conn = aioredis.from_url(
    settings.REDIS_URL,
    decode_responses=True
)
