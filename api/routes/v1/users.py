"""User profile, employer verification and multi-role endpoints."""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Path, Query

from api.dependencies import get_current_actor, get_store, require_admin
from api.services import users as user_service
from api.services.identity import ActorContext
from database.models.enums import VerificationStatus
from database.store import DocumentStore

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", summary="My Profile")
async def get_my_profile(
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    return await user_service.get_profile(store, actor.id)


@router.patch("/me", summary="Update My Profile")
async def update_my_profile(
    changes: dict[str, Any] = Body(..., description="Profile fields to change"),
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    return await user_service.update_profile(store, actor, changes)


@router.post("/me/multi-role-request", status_code=202, summary="Request Multi-Role Access")
async def request_multi_role(
    details: Optional[dict[str, Any]] = Body(None, embed=True),
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    await user_service.request_multi_role_upgrade(store, actor, details)
    return {"status": "pending"}


@router.get("/employers", summary="Employers By Verification Status", description="Admin only.")
async def list_employers(
    status: VerificationStatus = Query(VerificationStatus.PENDING),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return await user_service.list_employers_by_verification(store, status)


@router.get("/multi-role-requests", summary="Pending Multi-Role Requests", description="Admin only.")
async def list_multi_role_requests(
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return await user_service.list_multi_role_requests(store)


@router.get("/{user_id}/verification-status", summary="Verification Status")
async def get_verification_status(
    user_id: str = Path(..., description="User ID"),
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    status = await user_service.get_verification_status(store, user_id)
    return {"id": user_id, "status": status.value}


@router.post("/{user_id}/verification", summary="Decide Employer Verification", description="Admin only.")
async def decide_verification(
    user_id: str = Path(..., description="Employer user ID"),
    approved: bool = Body(..., embed=True),
    reason: Optional[str] = Body(None, embed=True),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    status = await user_service.set_employer_verification(store, actor, user_id, approved, reason)
    return {"id": user_id, "status": status.value}


@router.post("/{user_id}/multi-role/approve", summary="Approve Multi-Role Request", description="Admin only.")
async def approve_multi_role(
    user_id: str = Path(..., description="User ID"),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    active_role = await user_service.approve_multi_role_upgrade(store, actor, user_id)
    return {"id": user_id, "role": "multi", "activeRole": active_role.value}


@router.post("/{user_id}/multi-role/reject", summary="Reject Multi-Role Request", description="Admin only.")
async def reject_multi_role(
    user_id: str = Path(..., description="User ID"),
    reason: Optional[str] = Body(None, embed=True),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    role = await user_service.reject_multi_role_upgrade(store, actor, user_id, reason)
    return {"id": user_id, "role": role.value}
