"""
Notification API endpoints
In-app notifications, release calendar, category follows, devices and the live WebSocket
"""
import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Optional, List

from core.database import get_db
from core.security import get_current_user, get_user_from_token
from models.user import User
from models.video import Category
from services import notification_service
from services.notification_service import connection_manager

logger = logging.getLogger(__name__)

router = APIRouter()
ws_router = APIRouter()


# ============================================
# Request/Response Models (Pydantic schemas)
# ============================================

class MarkReadRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)


class DeviceRequest(BaseModel):
    deviceToken: str = Field(..., min_length=1, max_length=512)
    platform: str = Field("web", max_length=32)


# ============================================
# Notifications
# ============================================

@router.get("")
async def list_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Latest 50 notifications"""
    return [n.to_dict() for n in notification_service.get_notifications(db, current_user.id)]


@router.get("/unread-count")
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return {"count": notification_service.unread_count(db, current_user.id)}


@router.post("/read")
async def mark_read(
    request: MarkReadRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    updated = notification_service.mark_as_read(db, current_user.id, request.ids)
    return {"updated": updated}


@router.post("/read-all")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    updated = notification_service.mark_as_read(db, current_user.id)
    return {"updated": updated}


# ============================================
# Release calendar
# ============================================

@router.get("/calendar")
async def calendar(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: Session = Depends(get_db)
):
    if start and end and start > end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start must be before end"
        )
    return [release.to_dict() for release in notification_service.get_calendar_events(db, start, end)]


# ============================================
# Category follows
# ============================================

@router.get("/categories")
async def list_category_subscriptions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [s.to_dict() for s in notification_service.get_category_subscriptions(db, current_user.id)]


@router.post("/categories/{category_id}", status_code=status.HTTP_201_CREATED)
async def subscribe_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not db.query(Category.id).filter(Category.id == category_id).first():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Category not found"
        )
    return notification_service.subscribe_to_category(db, current_user.id, category_id).to_dict()


@router.delete("/categories/{category_id}")
async def unsubscribe_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not notification_service.unsubscribe_from_category(db, current_user.id, category_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not subscribed to this category"
        )
    return {"message": "Unsubscribed"}


# ============================================
# Devices
# ============================================

@router.get("/devices")
async def list_devices(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [d.to_dict() for d in notification_service.get_devices(db, current_user.id)]


@router.post("/devices")
async def register_device(
    request: DeviceRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return notification_service.register_device(db, current_user.id, request.deviceToken, request.platform).to_dict()


@router.delete("/devices/{device_id}")
async def remove_device(
    device_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    if not notification_service.remove_device(db, current_user.id, device_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Device not found"
        )
    return {"message": "Device removed"}


# ============================================
# WebSocket
# ============================================

@ws_router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    """
    Live notifications

    Client messages:
    - {"type": "ping"} -> {"type": "pong"}
    - {"type": "mark_read", "ids": [...]} -> {"type": "marked_read", "updated": n}
    """
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        user = get_user_from_token(token, db)
    except HTTPException as e:
        logger.warning(f"WebSocket rejected: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = user.id
    await connection_manager.connect(user_id, websocket)

    try:
        unread = notification_service.get_unread(db, user_id)
        await websocket.send_json({
            "type": "unread",
            "notifications": [n.to_dict() for n in unread],
            "count": len(unread),
        })

        while True:
            message = await websocket.receive_json()
            kind = message.get("type") if isinstance(message, dict) else None

            if kind == "ping":
                await websocket.send_json({"type": "pong"})
            elif kind == "mark_read":
                ids = message.get("ids")
                updated = notification_service.mark_as_read(db, user_id, ids if isinstance(ids, list) else None)
                await websocket.send_json({"type": "marked_read", "updated": updated})
            else:
                await websocket.send_json({"type": "error", "message": "Unknown message type"})
    except WebSocketDisconnect:
        pass
    finally:
        connection_manager.disconnect(user_id, websocket)
