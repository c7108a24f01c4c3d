# agent/queue.py
from __future__ import annotations

from typing import Optional

import redis

from slurmci.settings import DEFAULT_QUEUE_NAME


class EventQueue:
    """
    Worker side of the push-event queue (a Redis list).

    Producers RPUSH, consumers BLPOP: FIFO, and each event is handed to
    exactly one worker. The client is injected so tests need no broker.
    """

    def __init__(self, client: redis.Redis, name: str = DEFAULT_QUEUE_NAME):
        self.client = client
        self.name = name

    @classmethod
    def from_url(cls, url: str, name: str = DEFAULT_QUEUE_NAME) -> EventQueue:
        # bytes in, bytes out: payloads stay exactly as published
        return cls(redis.from_url(url, decode_responses=False), name)

    def publish(self, payload: bytes) -> int:
        """Append an event; returns the queue length reported by Redis."""
        return self.client.rpush(self.name, payload)  # FIFO: push right

    def next_event(self, timeout: int = 5) -> Optional[bytes]:
        """Block up to `timeout` seconds for the next payload."""
        item = self.client.blpop([self.name], timeout=timeout)  # FIFO: pop left
        if not item:
            return None
        _q, payload = item
        return payload

    def ping(self) -> bool:
        return bool(self.client.ping())

    def close(self) -> None:
        self.client.close()
