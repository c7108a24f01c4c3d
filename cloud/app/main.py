from __future__ import annotations

from typing import Any

import redis.asyncio as redis
from fastapi import FastAPI, Header, HTTPException, Request
from pydantic import BaseModel, ConfigDict, ValidationError

from .redisq import publish_event, queue_length, r
from .settings import QUEUE_NAME

app = FastAPI(title="slurmci webhook ingress")

# -------------------- Schemas --------------------

class RepositoryPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    full_name: str
    clone_url: str

class PushPayload(BaseModel):
    """Only what the worker needs is checked; everything else passes through."""
    model_config = ConfigDict(extra="allow")

    ref: str
    repository: RepositoryPayload

class WebhookAccepted(BaseModel):
    queued: bool
    queue: str
    position: int | None = None

class Health(BaseModel):
    ok: bool
    queue: str
    pending: int | None = None
    error: str | None = None

# -------------------- Lifecycle --------------------

@app.on_event("shutdown")
async def shutdown() -> None:
    await r.aclose()

# -------------------- Endpoints --------------------

@app.post("/webhook", response_model=WebhookAccepted)
async def webhook(request: Request, x_github_event: str | None = Header(default=None)):
    # GitHub sends a ping when the hook is created
    if x_github_event == "ping":
        return WebhookAccepted(queued=False, queue=QUEUE_NAME)

    body = await request.body()
    try:
        PushPayload.model_validate_json(body)
    except ValidationError as e:
        detail: Any = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
        raise HTTPException(status_code=422, detail=detail)

    try:
        position = await publish_event(body)
    except redis.RedisError as e:
        raise HTTPException(status_code=500, detail=f"Failed to queue event: {e}")

    return WebhookAccepted(queued=True, queue=QUEUE_NAME, position=position)

@app.get("/healthz", response_model=Health)
async def healthz():
    try:
        pending = await queue_length()
    except redis.RedisError as e:
        return Health(ok=False, queue=QUEUE_NAME, error=str(e))
    return Health(ok=True, queue=QUEUE_NAME, pending=pending)
