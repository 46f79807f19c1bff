"""Activity ledger endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from api.dependencies import get_current_actor, get_store, require_admin, require_employer
from api.services import activity as activity_service
from api.services.identity import ActorContext
from database.store import DocumentStore

router = APIRouter(prefix="/activity", tags=["activity"])


@router.post(
    "",
    status_code=202,
    summary="Record Activity",
    description="Record an activity for the current user. Written after the response; failures are only logged.",
)
async def record_activity(
    background_tasks: BackgroundTasks,
    activity_type: str = Body(..., embed=True, alias="type", min_length=1, description="Activity type"),
    description: str = Body(..., embed=True, min_length=1),
    metadata: Optional[dict[str, Any]] = Body(None, embed=True),
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    background_tasks.add_task(
        activity_service.record_activity,
        store,
        actor.id,
        activity_type,
        description,
        actor.activity_metadata(**(metadata or {})),
    )
    return {"status": "accepted"}


@router.get("/me", summary="My Activity")
async def list_my_activity(
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    return await activity_service.list_user_activity(store, actor.id, limit)


@router.get("/employer", summary="Employer Activity Feed")
async def list_employer_activity(
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    return await activity_service.list_employer_activity(store, actor.id, limit)


@router.get("/all", summary="Global Activity Ledger", description="Admin only.")
async def list_global_activity(
    activity_type: Optional[str] = Query(None, alias="type"),
    limit: int = Query(100, ge=1, le=500),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return await activity_service.list_global_activity(store, activity_type, limit)


@router.get("/admin", summary="Admin Activity Ledger", description="Admin only.")
async def list_admin_activity(
    limit: int = Query(100, ge=1, le=500),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return await activity_service.list_admin_activity(store, limit)


@router.get("/jobseekers", summary="Jobseeker Activity Ledger", description="Admin only.")
async def list_jobseeker_activity(
    limit: int = Query(100, ge=1, le=500),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return await activity_service.list_jobseeker_activity(store, limit)
