"""
Application service functions.

The primary application document (`applications/{id}`) and the jobseeker's
mirror (`users/{jobseekerId}/appliedJobs/{id}`) are always written in one
transaction, so their status never diverges. Workflow operations add an
outbox event to that same transaction; ledger and notification entries are
projected from it after commit.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union
import logging

from core.config import settings
from core.errors import NotFound, RoleNotPermitted
from database.collections import COLLECTION_APPLICATIONS, applied_jobs_path
from database.models.enums import ApplicationStatus, OutboxEventKind
from database.store import SERVER_TIMESTAMP, DocumentStore, Transaction, new_document_id
from api.services.jobs import (
    decrement_applications_count,
    get_job,
    increment_applications_count,
    job_owner_id,
    require_open_job,
)
from api.services.outbox import project_event, stage_event

if TYPE_CHECKING:
    from api.services.identity import ActorContext

logger = logging.getLogger(__name__)

# Set by the updater itself, never taken from client data
RESERVED_APPLICATION_FIELDS = frozenset({
    "id",
    "applicationId",
    "jobseekerId",
    "jobId",
    "status",
    "createdAt",
    "updatedAt",
})

StatusValue = Union[ApplicationStatus, str]


def _status_value(status: StatusValue) -> str:
    if isinstance(status, ApplicationStatus):
        return status.value
    if not isinstance(status, str):
        raise ValueError(f"Application status must be a string, got {type(status).__name__}")
    return status


def _warn_on_unusual_transition(application_id: str, previous: Any, new: str) -> None:
    # Transitions are advisory: anything is applied, unusual ones are logged
    new_status = ApplicationStatus.try_parse(new)
    if new_status is None:
        logger.warning(f"Application {application_id} set to unknown status {new!r}")
        return
    previous_status = ApplicationStatus.try_parse(previous)
    if previous_status is None or previous_status is new_status:
        return
    if not previous_status.can_transition_to(new_status):
        logger.warning(
            f"Application {application_id} moved {previous_status.value} -> {new_status.value}, "
            f"outside the usual workflow"
        )


async def _stage_application(
    tx: Transaction,
    jobseeker_id: str,
    job_id: str,
    app_data: Dict[str, Any],
) -> str:
    application_id = new_document_id()
    fields = {key: value for key, value in app_data.items() if key not in RESERVED_APPLICATION_FIELDS}
    status = ApplicationStatus.PENDING.value

    await tx.set(
        COLLECTION_APPLICATIONS,
        application_id,
        {
            **fields,
            "applicationId": application_id,
            "jobseekerId": jobseeker_id,
            "jobId": job_id,
            "status": status,
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        },
    )
    await tx.set(
        applied_jobs_path(jobseeker_id),
        application_id,
        {
            "jobId": job_id,
            "applicationId": application_id,
            "appliedAt": SERVER_TIMESTAMP,
            "status": status,
        },
    )
    return application_id


async def _stage_status_update(
    tx: Transaction,
    application_id: str,
    new_status: StatusValue,
    extra_fields: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Update primary and mirror status in `tx`; returns the primary as it was before."""
    status = _status_value(new_status)
    application = await tx.get(COLLECTION_APPLICATIONS, application_id)
    if application is None:
        raise NotFound(COLLECTION_APPLICATIONS, application_id)

    _warn_on_unusual_transition(application_id, application.get("status"), status)
    await tx.update(
        COLLECTION_APPLICATIONS,
        application_id,
        {**(extra_fields or {}), "status": status, "updatedAt": SERVER_TIMESTAMP},
    )

    jobseeker_id = application.get("jobseekerId")
    if not jobseeker_id:
        logger.warning(f"Application {application_id} has no jobseekerId; mirror update skipped")
        return application

    mirror_path = applied_jobs_path(jobseeker_id)
    mirror = {"status": status, "updatedAt": SERVER_TIMESTAMP}
    if await tx.get(mirror_path, application_id) is None:
        # Rebuild a missing mirror from the primary
        logger.warning(f"Mirror for application {application_id} was missing; recreating it")
        mirror.update({
            "jobId": application.get("jobId"),
            "applicationId": application_id,
            "appliedAt": application.get("createdAt") or SERVER_TIMESTAMP,
        })
    await tx.set(mirror_path, application_id, mirror, merge=True)
    return application


async def create_application(
    store: DocumentStore,
    jobseeker_id: str,
    job_id: str,
    app_data: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create an application and its mirror atomically.

    Args:
        store: Document store
        jobseeker_id: Applying jobseeker
        job_id: Job applied to
        app_data: Additional application fields

    Returns:
        New application id

    Raises:
        TransactionAborted: Neither document was written
    """
    if not jobseeker_id or not job_id:
        raise ValueError("jobseeker_id and job_id are required")
    async with store.transaction("create_application") as tx:
        application_id = await _stage_application(tx, jobseeker_id, job_id, dict(app_data or {}))
    logger.info(f"Application {application_id} created for job {job_id} by {jobseeker_id}")
    return application_id


async def update_application_status(
    store: DocumentStore,
    application_id: str,
    new_status: StatusValue,
) -> None:
    """
    Set the status of an application and its mirror atomically.

    Raises:
        NotFound: No such application; nothing was written
        TransactionAborted: Neither document was updated
    """
    async with store.transaction("update_application_status") as tx:
        await _stage_status_update(tx, application_id, new_status)
    logger.info(f"Application {application_id} status set to {_status_value(new_status)}")


# ==================== Reads ===================== #
async def _employer_for(store: DocumentStore, application: Dict[str, Any]) -> Optional[str]:
    if application.get("employerId"):
        return application["employerId"]
    try:
        return job_owner_id(await get_job(store, application.get("jobId") or ""))
    except (NotFound, ValueError):
        return None


async def _require_employer_access(
    store: DocumentStore,
    actor: "ActorContext",
    application: Dict[str, Any],
) -> Optional[str]:
    employer_id = await _employer_for(store, application)
    if not actor.is_admin and employer_id != actor.id:
        raise RoleNotPermitted(actor.effective_role.value, "job owner")
    return employer_id


async def get_application(
    store: DocumentStore,
    actor: "ActorContext",
    application_id: str,
) -> Dict[str, Any]:
    """
    Get an application visible to the actor.

    Raises:
        NotFound: No such application, or not visible to the actor
    """
    application = await store.get_entity(COLLECTION_APPLICATIONS, application_id)
    if actor.is_admin or application.get("jobseekerId") == actor.id:
        return application
    if await _employer_for(store, application) == actor.id:
        return application
    raise NotFound(COLLECTION_APPLICATIONS, application_id)


async def list_applications_for_job(
    store: DocumentStore,
    actor: "ActorContext",
    job_id: str,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    job = await get_job(store, job_id)
    if not actor.is_admin and job_owner_id(job) != actor.id:
        raise RoleNotPermitted(actor.effective_role.value, "job owner")
    where = [("jobId", "==", job_id)]
    if status:
        where.append(("status", "==", status))
    return await store.query(COLLECTION_APPLICATIONS, where=where, order_by="createdAt", descending=True)


async def list_my_applications(store: DocumentStore, actor: "ActorContext") -> List[Dict[str, Any]]:
    return await store.query(
        COLLECTION_APPLICATIONS,
        where=[("jobseekerId", "==", actor.id)],
        order_by="createdAt",
        descending=True,
    )


async def list_applied_jobs(store: DocumentStore, jobseeker_id: str) -> List[Dict[str, Any]]:
    """The jobseeker's applied-jobs mirror, newest first."""
    return await store.query(applied_jobs_path(jobseeker_id), order_by="appliedAt", descending=True)


async def has_applied(store: DocumentStore, jobseeker_id: str, job_id: str) -> bool:
    matches = await store.query(applied_jobs_path(jobseeker_id), where=[("jobId", "==", job_id)], limit=1)
    return bool(matches)


# ==================== Workflow ===================== #
async def _project_inline(store: DocumentStore, event_id: str) -> None:
    if not settings.outbox_inline_projection:
        return
    try:
        await project_event(store, event_id)
    except Exception:
        logger.exception(f"Inline projection of outbox event {event_id} failed; left pending")


async def apply_to_job(
    store: DocumentStore,
    actor: "ActorContext",
    job_id: str,
    app_data: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Apply to an open job as the acting jobseeker.

    Returns:
        New application id
    """
    job = await require_open_job(store, job_id)
    if await has_applied(store, actor.id, job_id):
        raise ValueError("You have already applied for this job")

    employer_id = job_owner_id(job)
    data = {
        **(app_data or {}),
        "jobTitle": job.get("title") or "",
        "companyName": job.get("companyName") or "",
        "employerId": employer_id,
        "applicantName": actor.display_name,
        "applicantEmail": actor.email,
    }

    async with store.transaction("apply_to_job") as tx:
        application_id = await _stage_application(tx, actor.id, job_id, data)
        event_id = await stage_event(
            tx,
            OutboxEventKind.APPLICATION_SUBMITTED,
            {
                "applicationId": application_id,
                "jobId": job_id,
                "jobTitle": data["jobTitle"],
                "companyName": data["companyName"],
                "employerId": employer_id,
                "jobseekerId": actor.id,
                "applicantName": actor.display_name,
            },
        )
    logger.info(f"Application {application_id} submitted for job {job_id}")

    await increment_applications_count(store, job_id)
    await _project_inline(store, event_id)
    return application_id


async def change_application_status(
    store: DocumentStore,
    actor: "ActorContext",
    application_id: str,
    new_status: ApplicationStatus,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Move an application to `new_status` as the owning employer (or an admin).

    Args:
        store: Document store
        actor: Job owner or admin
        application_id: Application to change
        new_status: Target status
        details: Status-specific fields stored on the primary document

    Returns:
        The application after the change
    """
    application = await store.get_entity(COLLECTION_APPLICATIONS, application_id)
    employer_id = await _require_employer_access(store, actor, application)
    details = {key: value for key, value in (details or {}).items() if value is not None}

    async with store.transaction("change_application_status") as tx:
        before = await _stage_status_update(tx, application_id, new_status, details)
        event_id = await stage_event(
            tx,
            OutboxEventKind.APPLICATION_STATUS_CHANGED,
            {
                "applicationId": application_id,
                "jobId": before.get("jobId"),
                "jobTitle": before.get("jobTitle") or "",
                "companyName": before.get("companyName") or "",
                "applicantName": before.get("applicantName"),
                "jobseekerId": before.get("jobseekerId"),
                "employerId": employer_id,
                "actorId": actor.id,
                "actorRole": actor.role.value,
                "actorActiveRole": actor.effective_role.value,
                "previousStatus": before.get("status"),
                "newStatus": new_status.value,
                "details": details,
            },
        )
    logger.info(f"Application {application_id} moved {before.get('status')} -> {new_status.value}")

    if new_status is ApplicationStatus.REJECTED and before.get("status") != ApplicationStatus.REJECTED.value:
        await decrement_applications_count(store, before.get("jobId") or "")
    await _project_inline(store, event_id)
    return await store.get_entity(COLLECTION_APPLICATIONS, application_id)


async def review_application(
    store: DocumentStore,
    actor: "ActorContext",
    application_id: str,
) -> Dict[str, Any]:
    return await change_application_status(store, actor, application_id, ApplicationStatus.UNDER_REVIEW)


async def shortlist_application(
    store: DocumentStore,
    actor: "ActorContext",
    application_id: str,
) -> Dict[str, Any]:
    return await change_application_status(store, actor, application_id, ApplicationStatus.SHORTLISTED)


async def schedule_interview(
    store: DocumentStore,
    actor: "ActorContext",
    application_id: str,
    interview_date: str,
    interview_time: Optional[str] = None,
    location: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    if not interview_date:
        raise ValueError("interview_date is required")
    return await change_application_status(
        store,
        actor,
        application_id,
        ApplicationStatus.INTERVIEW_SCHEDULED,
        {
            "interviewDate": interview_date,
            "interviewTime": interview_time,
            "location": location,
            "notes": notes,
        },
    )


async def hire_applicant(
    store: DocumentStore,
    actor: "ActorContext",
    application_id: str,
    start_date: Optional[str] = None,
) -> Dict[str, Any]:
    return await change_application_status(
        store,
        actor,
        application_id,
        ApplicationStatus.HIRED,
        {"startDate": start_date, "hiredAt": SERVER_TIMESTAMP},
    )


async def reject_applicant(
    store: DocumentStore,
    actor: "ActorContext",
    application_id: str,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    return await change_application_status(
        store,
        actor,
        application_id,
        ApplicationStatus.REJECTED,
        {"reason": reason, "rejectedAt": SERVER_TIMESTAMP},
    )
