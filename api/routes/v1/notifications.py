"""Notification inbox endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query

from api.dependencies import get_current_actor, get_store, require_admin
from api.schemas.notifications import AdminNotificationCreate, MarkAllReadResponse
from api.services import notifications as notification_service
from api.services.identity import ActorContext
from database.models.enums import NotificationKind, Role
from database.store import DocumentStore

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", summary="List Notifications", description="Inbox of the current role, newest first.")
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    return await notification_service.list_notifications(store, actor, unread_only, limit)


@router.get("/unread-count", summary="Unread Count")
async def unread_count(
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    return {"unread": await notification_service.count_unread_notifications(store, actor)}


@router.post("/read-all", response_model=MarkAllReadResponse, summary="Mark All Read")
async def mark_all_read(
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    updated = await notification_service.mark_all_notifications_read(store, actor)
    return MarkAllReadResponse(updated=updated)


@router.post("/{notification_id}/read", summary="Mark Read")
async def mark_read(
    notification_id: str = Path(..., description="Notification ID"),
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    await notification_service.mark_notification_read(store, actor, notification_id)
    return {"id": notification_id, "isRead": True}


@router.post(
    "/dispatch",
    status_code=201,
    summary="Dispatch Notification",
    description="Send a typed notification to a jobseeker or employer inbox. Admin only.",
)
async def dispatch_notification(
    kind: NotificationKind = Body(..., embed=True),
    recipient_id: str = Body(..., embed=True, min_length=1),
    payload: dict[str, Any] = Body(..., embed=True),
    recipient_role: Optional[Role] = Body(
        None, embed=True, description="jobseeker or employer inbox for system / job_related"
    ),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    # Validate up front so a bad payload is a 400, not a silent None
    notification_service.validate_payload(kind, payload)
    notification_service.validate_recipient_role(kind, recipient_role)
    notification_id = await notification_service.dispatch_notification(
        store, kind, recipient_id, payload, recipient_role=recipient_role
    )
    if notification_id is None:
        raise HTTPException(status_code=502, detail="Notification could not be delivered")
    return {"id": notification_id, "kind": kind.value}


@router.post("/admin", status_code=201, summary="Create Admin Notification", description="Admin only.")
async def create_admin_notification(
    body: AdminNotificationCreate,
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    notification_id = await notification_service.add_admin_notification(
        store,
        body.title,
        body.message,
        body.type,
        body.target_admin_id,
        body.link,
        related_user_id=actor.id,
    )
    if notification_id is None:
        raise HTTPException(status_code=502, detail="Notification could not be delivered")
    return {"id": notification_id}
