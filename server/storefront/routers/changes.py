"""Admin change notifications and their fan-out to browser sessions."""

import asyncio
import json
from typing import Any, AsyncIterator, Optional
from pydantic import BaseModel, Field
from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import StreamingResponse

from ..models import ChangeAction, EntityType
from ..services.container import CatalogServices
from .deps import get_services

router = APIRouter(tags=["changes"])

HEARTBEAT_SECONDS = 15.0


class ChangeRequest(BaseModel):
    """A change made through the admin panel."""
    entity_type: EntityType = Field(..., description="category, product or collection")
    action: ChangeAction = Field(..., description="create, update or delete")
    payload: Optional[Any] = Field(default=None, description="The changed entity, if useful")


def require_admin(
    authorization: Optional[str] = Header(None),
    services: CatalogServices = Depends(get_services),
) -> None:
    """Check the bearer token when an admin token is configured."""
    expected = services.settings.admin_token
    if not expected:
        return
    if authorization != f"Bearer {expected}":
        raise HTTPException(status_code=401, detail="Admin token required")


@router.post("/changes", dependencies=[Depends(require_admin)])
async def post_change(request: ChangeRequest, services: CatalogServices = Depends(get_services)):
    """Invalidate caches for a change and broadcast it to every session."""
    notification = services.broadcaster.notify(
        request.entity_type,
        request.action,
        request.payload,
    )
    return {"success": True, "notification": notification}


@router.get("/changes/last")
async def get_last_change(services: CatalogServices = Depends(get_services)):
    """The most recent change notification, if any."""
    return {"notification": services.channel.last()}


async def notification_stream(
    channel, heartbeat: float = HEARTBEAT_SECONDS
) -> AsyncIterator[str]:
    """Yield SSE frames for every message published on channel."""
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = channel.subscribe(queue.put_nowait)
    try:
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield f"data: {json.dumps(message)}\n\n"
    finally:
        unsubscribe()


@router.get("/changes/stream")
async def stream_changes(services: CatalogServices = Depends(get_services)):
    """SSE endpoint pushing change notifications to open storefront pages."""
    return StreamingResponse(
        notification_stream(services.channel),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
