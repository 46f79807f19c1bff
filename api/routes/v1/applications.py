"""
Application workflow endpoints.

Jobseekers apply and read their applications; job owners move applications
through review, interview, hire and rejection.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query

from api.dependencies import get_current_actor, get_store, require_admin, require_employer, require_jobseeker
from api.schemas.applications import ApplicationCreate, ApplicationCreatedResponse, InterviewSchedule
from api.services import applications as application_service
from api.services.identity import ActorContext
from database.models.enums import ApplicationStatus
from database.store import DocumentStore

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post(
    "/jobs/{job_id}",
    response_model=ApplicationCreatedResponse,
    status_code=201,
    summary="Apply To Job",
    description="Submit an application as the current jobseeker.",
)
async def apply_to_job(
    job_id: str = Path(..., description="Job ID"),
    application: Optional[ApplicationCreate] = None,
    actor: ActorContext = Depends(require_jobseeker),
    store: DocumentStore = Depends(get_store),
):
    application_id = await application_service.apply_to_job(
        store, actor, job_id, application.model_dump(exclude_none=True) if application else None
    )
    return ApplicationCreatedResponse(id=application_id, status=ApplicationStatus.PENDING.value)


@router.get("/mine", summary="My Applications")
async def list_my_applications(
    actor: ActorContext = Depends(require_jobseeker),
    store: DocumentStore = Depends(get_store),
):
    return await application_service.list_my_applications(store, actor)


@router.get("/applied-jobs", summary="My Applied Jobs", description="The jobseeker's applied-jobs mirror.")
async def list_applied_jobs(
    actor: ActorContext = Depends(require_jobseeker),
    store: DocumentStore = Depends(get_store),
):
    return await application_service.list_applied_jobs(store, actor.id)


@router.get("", summary="List Applications For Job", description="Job owner or admin.")
async def list_applications(
    job_id: str = Query(..., description="Job ID to list applications for"),
    status: Optional[str] = Query(None, description="Filter by status"),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    return await application_service.list_applications_for_job(store, actor, job_id, status)


@router.get("/{application_id}", summary="Get Application")
async def get_application(
    application_id: str = Path(..., description="Application ID"),
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    return await application_service.get_application(store, actor, application_id)


@router.post("/{application_id}/review", summary="Mark Under Review")
async def review_application(
    application_id: str = Path(..., description="Application ID"),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    return await application_service.review_application(store, actor, application_id)


@router.post("/{application_id}/shortlist", summary="Shortlist Application")
async def shortlist_application(
    application_id: str = Path(..., description="Application ID"),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    return await application_service.shortlist_application(store, actor, application_id)


@router.post("/{application_id}/interview", summary="Schedule Interview")
async def schedule_interview(
    body: InterviewSchedule,
    application_id: str = Path(..., description="Application ID"),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    return await application_service.schedule_interview(
        store,
        actor,
        application_id,
        body.interview_date,
        body.interview_time,
        body.location,
        body.notes,
    )


@router.post("/{application_id}/hire", summary="Hire Applicant")
async def hire_applicant(
    application_id: str = Path(..., description="Application ID"),
    start_date: Optional[str] = Body(None, embed=True, description="Start date (ISO date)"),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    return await application_service.hire_applicant(store, actor, application_id, start_date)


@router.post("/{application_id}/reject", summary="Reject Applicant")
async def reject_applicant(
    application_id: str = Path(..., description="Application ID"),
    reason: Optional[str] = Body(None, embed=True, description="Reason shown to the jobseeker"),
    actor: ActorContext = Depends(require_employer),
    store: DocumentStore = Depends(get_store),
):
    return await application_service.reject_applicant(store, actor, application_id, reason)


@router.put(
    "/{application_id}/status",
    summary="Set Application Status",
    description="Set any status on an application and its mirror, without notifications. Admin only.",
)
async def set_application_status(
    application_id: str = Path(..., description="Application ID"),
    status: str = Body(..., embed=True, min_length=1),
    actor: ActorContext = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    await application_service.update_application_status(store, application_id, status)
    return await application_service.get_application(store, actor, application_id)
