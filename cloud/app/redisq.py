from __future__ import annotations

import redis.asyncio as redis
from .settings import REDIS_URL, QUEUE_NAME

# raw bytes: events are forwarded exactly as GitHub sent them
r = redis.from_url(REDIS_URL, decode_responses=False)

async def publish_event(payload: bytes) -> int:
    # RPUSH only returns once the broker has stored the item
    return await r.rpush(QUEUE_NAME, payload)  # FIFO: push right

async def queue_length() -> int:
    return await r.llen(QUEUE_NAME)
