"""
Job posting endpoints.

Employers post and manage jobs; admins verify them. New and edited
postings wait in the verification queue.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Response

from api.dependencies import get_store, require_admin, require_employer
from api.schemas.jobs import JobCreate, JobCreatedResponse, JobUpdate
from api.services import jobs as job_service
from api.services.identity import ActorContext
from database.models.enums import VerificationStatus
from database.store import DocumentStore

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post(
    "",
    response_model=JobCreatedResponse,
    status_code=201,
    summary="Create Job",
    description="Post a job as the current employer. The posting starts pending verification.",
)
async def create_job(
    job: JobCreate,
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    job_id = await job_service.create_job(store, actor, job.model_dump(exclude_none=True))
    return JobCreatedResponse(id=job_id, verificationStatus=VerificationStatus.PENDING.value)


@router.get("", summary="Search Jobs", description="Open, approved jobs.")
async def search_jobs(
    q: Optional[str] = Query(None, description="Text in title, description or company"),
    location: Optional[str] = Query(None),
    job_type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    store: DocumentStore = Depends(get_store),
):
    return await job_service.search_jobs(store, q, location, job_type, limit)


@router.get("/mine", summary="My Jobs")
async def list_my_jobs(
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    return await job_service.list_employer_jobs(store, actor.id)


@router.get("/pending-verification", summary="Jobs Awaiting Verification", description="Admin only.")
async def list_pending_verification(
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return await job_service.list_pending_job_verifications(store)


@router.get("/{job_id}", summary="Get Job")
async def get_job(
    job_id: str = Path(..., description="Job ID"),
    store: DocumentStore = Depends(get_store),
):
    return await job_service.get_job(store, job_id)


@router.patch("/{job_id}", summary="Update Job", description="Job owner or admin.")
async def update_job(
    changes: JobUpdate,
    job_id: str = Path(..., description="Job ID"),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    return await job_service.update_job(store, actor, job_id, changes.changes())


@router.delete("/{job_id}", status_code=204, summary="Delete Job", description="Job owner or admin.")
async def delete_job(
    job_id: str = Path(..., description="Job ID"),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    await job_service.delete_job(store, actor, job_id)
    return Response(status_code=204)


@router.post("/{job_id}/toggle", summary="Open Or Close Job")
async def toggle_job(
    job_id: str = Path(..., description="Job ID"),
    is_active: bool = Body(..., embed=True),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    await job_service.toggle_job_status(store, actor, job_id, is_active)
    return {"id": job_id, "isActive": is_active}


@router.post("/{job_id}/approve", summary="Approve Job", description="Admin only.")
async def approve_job(
    job_id: str = Path(..., description="Job ID"),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    await job_service.approve_job(store, actor, job_id)
    return {"id": job_id, "verificationStatus": VerificationStatus.APPROVED.value}


@router.post("/{job_id}/reject", summary="Reject Job", description="Admin only.")
async def reject_job(
    job_id: str = Path(..., description="Job ID"),
    reason: Optional[str] = Body(None, embed=True),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    await job_service.reject_job(store, actor, job_id, reason)
    return {"id": job_id, "verificationStatus": VerificationStatus.REJECTED.value}
