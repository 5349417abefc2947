import asyncio
from uuid import UUID

from anyio import from_thread
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mapshare.core.auth import get_current_user_id
from mapshare.core.db import get_db
from mapshare.core.validation import validate_coordinates
from mapshare.realtime.hub import presence_hub, presence_changed
from mapshare.schemas.base import MessageResponse
from mapshare.schemas.enums import PresenceEvent
from mapshare.schemas.live_location import (
    LiveLocationUpdateRequest,
    LiveLocationResponse,
    LiveLocationListResponse,
)
from mapshare.services import presence_store

router = APIRouter(prefix="/live-locations", tags=["live-locations"])


def _notify(event: dict) -> None:
    # sync handlers run in the threadpool; the hub lives on the event loop
    from_thread.run(presence_hub.publish, event)


# ------------------------------------------------------------------
# LIST
# ------------------------------------------------------------------

@router.get("", response_model=LiveLocationListResponse)
def list_live_locations(db: Session = Depends(get_db)):
    try:
        rows = presence_store.list_presence(db)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching live locations: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch live locations")

    return {"data": rows}


# ------------------------------------------------------------------
# UPSERT
# ------------------------------------------------------------------

@router.post("/update", response_model=LiveLocationResponse)
def update_live_location(
    payload: LiveLocationUpdateRequest,
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    errors = validate_coordinates(payload.latitude, payload.longitude)
    if errors:
        raise HTTPException(status_code=400, detail=", ".join(errors))

    try:
        record, event = presence_store.upsert_presence(
            db, str(user_id), payload.latitude, payload.longitude
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating live location: {e}")
        raise HTTPException(status_code=500, detail="Failed to update live location")

    _notify(presence_changed(event.value, str(user_id)))
    return {"data": record}


# ------------------------------------------------------------------
# RETRACT
# ------------------------------------------------------------------

@router.post("/stop", response_model=MessageResponse)
def stop_sharing(
    db: Session = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    try:
        removed = presence_store.delete_presence(db, str(user_id))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting live location: {e}")
        raise HTTPException(status_code=500, detail="Failed to stop sharing location")

    if removed:
        _notify(presence_changed(PresenceEvent.delete.value, str(user_id)))

    return {"message": "Stopped sharing location"}


# ------------------------------------------------------------------
# CHANGE FEED
# ------------------------------------------------------------------

async def _forward(websocket: WebSocket, mailbox: asyncio.Queue) -> None:
    try:
        while True:
            event = await mailbox.get()
            await websocket.send_json(event)
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug(f"[realtime] stopped forwarding: {e!r}")


@router.websocket("/ws")
async def presence_changes(websocket: WebSocket):
    await websocket.accept()
    mailbox = await presence_hub.subscribe()
    await websocket.send_json({"type": "subscribed", "table": "live_locations"})

    sender = asyncio.create_task(_forward(websocket, mailbox))
    try:
        # clients never send anything meaningful; reading detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("[realtime] client disconnected")
    finally:
        sender.cancel()
        await presence_hub.unsubscribe(mailbox)
