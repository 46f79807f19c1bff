"""Outbox re-projection endpoints (admin operations)."""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from api.dependencies import get_store, require_admin
from api.services import outbox as outbox_service
from api.services.identity import ActorContext
from database.store import DocumentStore

router = APIRouter(prefix="/outbox", tags=["outbox"])


@router.post(
    "/project",
    summary="Project Pending Events",
    description="Re-run projection for every pending outbox event. Idempotent.",
)
async def project_pending(
    limit: Optional[int] = Query(None, ge=1, le=1000),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return await outbox_service.project_pending_events(store, limit)


@router.post("/{event_id}/project", summary="Project One Event")
async def project_one(
    event_id: str = Path(..., description="Outbox event ID"),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    projected = await outbox_service.project_event(store, event_id)
    return {"id": event_id, "projected": projected}
