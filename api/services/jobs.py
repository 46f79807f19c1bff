"""Job service functions: posting lifecycle, admin verification and counters."""

from typing import TYPE_CHECKING, Any, Dict, List, Optional
import logging

from core.errors import NotFound, RoleNotPermitted
from database.collections import COLLECTION_JOBS, COLLECTION_USERS
from database.models.enums import ActivityType, VerificationStatus
from database.store import SERVER_TIMESTAMP, DocumentStore
from api.services.activity import add_employer_activity, record_activity
from api.services.notifications import notify_employer, notify_job_verification_required

if TYPE_CHECKING:
    from api.services.identity import ActorContext

logger = logging.getLogger(__name__)

# Fields owned by the lifecycle operations, never by an edit
SYSTEM_JOB_FIELDS = frozenset({
    "id",
    "employerId",
    "companyId",
    "verificationStatus",
    "verifiedAt",
    "verifiedBy",
    "rejectedAt",
    "rejectedBy",
    "rejectionReason",
    "applicationsCount",
    "viewCount",
    "createdAt",
})


def job_owner_id(job: Dict[str, Any]) -> Optional[str]:
    """Owning employer of a job; older documents only carry `companyId`."""
    return job.get("employerId") or job.get("companyId") or None


def _normalize(job: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(job)
    owner = job_owner_id(job)
    if owner:
        normalized["employerId"] = owner
    return normalized


async def get_job(store: DocumentStore, job_id: str) -> Dict[str, Any]:
    """
    Get job details.

    Raises:
        NotFound: No such job
    """
    return _normalize(await store.get_entity(COLLECTION_JOBS, job_id))


async def _owned_job(store: DocumentStore, actor: "ActorContext", job_id: str) -> Dict[str, Any]:
    job = await get_job(store, job_id)
    if not actor.is_admin and job_owner_id(job) != actor.id:
        raise RoleNotPermitted(actor.effective_role.value, "job owner")
    return job


async def adjust_counter(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    field: str,
    delta: int,
) -> Optional[int]:
    """
    Atomically add `delta` to a numeric field, flooring at zero.

    Returns:
        New value, or None when the document is missing or the write failed
    """
    try:
        async with store.transaction(f"adjust {collection}.{field}") as tx:
            document = await tx.get(collection, doc_id)
            if document is None:
                logger.warning(f"Cannot adjust {field}: {collection}/{doc_id} not found")
                return None
            current = document.get(field)
            value = max(0, (current if isinstance(current, int) else 0) + delta)
            await tx.update(collection, doc_id, {field: value})
            return value
    except Exception:
        logger.exception(f"Error adjusting {field} on {collection}/{doc_id}")
        return None


async def increment_applications_count(store: DocumentStore, job_id: str) -> Optional[int]:
    return await adjust_counter(store, COLLECTION_JOBS, job_id, "applicationsCount", 1)


async def decrement_applications_count(store: DocumentStore, job_id: str) -> Optional[int]:
    return await adjust_counter(store, COLLECTION_JOBS, job_id, "applicationsCount", -1)


async def create_job(
    store: DocumentStore,
    actor: "ActorContext",
    job_data: Dict[str, Any],
) -> str:
    """
    Post a job. It starts unverified and waits for an admin decision.

    Args:
        store: Document store
        actor: Posting employer
        job_data: Job fields from the client

    Returns:
        New job id
    """
    if not job_data.get("title"):
        raise ValueError("Job title is required")

    employer = await store.get_entity(COLLECTION_USERS, actor.id)
    company_name = employer.get("companyName") or "Unknown Company"

    fields = {key: value for key, value in job_data.items() if key not in SYSTEM_JOB_FIELDS}
    job_id = await store.add(
        COLLECTION_JOBS,
        {
            **fields,
            "employerId": actor.id,
            "companyName": company_name,
            "companyLogo": employer.get("companyLogo"),
            "isActive": True,
            "verificationStatus": VerificationStatus.PENDING.value,
            "applicationsCount": 0,
            "viewCount": 0,
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        },
    )
    logger.info(f"Job {job_id} posted by employer {actor.id}")

    await adjust_counter(store, COLLECTION_USERS, actor.id, "jobCount", 1)
    await notify_job_verification_required(store, job_id, job_data["title"], company_name, actor.id)
    await add_employer_activity(
        store,
        actor.id,
        ActivityType.JOB_POST,
        f"You posted a new job: {job_data['title']}",
        {"jobId": job_id},
    )
    await record_activity(
        store,
        actor.id,
        ActivityType.JOB_POST,
        f"Posted job: {job_data['title']}",
        actor.activity_metadata(jobId=job_id),
    )
    return job_id


async def update_job(
    store: DocumentStore,
    actor: "ActorContext",
    job_id: str,
    changes: Dict[str, Any],
) -> Dict[str, Any]:
    """Edit a job posting. Edits send the job back to verification."""
    job = await _owned_job(store, actor, job_id)
    fields = {key: value for key, value in changes.items() if key not in SYSTEM_JOB_FIELDS}
    if not fields:
        raise ValueError("No job fields to update")

    await store.update(
        COLLECTION_JOBS,
        job_id,
        {
            **fields,
            "employerId": job_owner_id(job),
            "verificationStatus": VerificationStatus.PENDING.value,
            "updatedAt": SERVER_TIMESTAMP,
        },
    )
    title = fields.get("title") or job.get("title") or job_id

    await add_employer_activity(
        store,
        job_owner_id(job),
        ActivityType.JOB_UPDATE,
        f"You updated your job posting: {title}",
        {"jobId": job_id},
    )
    await record_activity(
        store,
        actor.id,
        ActivityType.JOB_UPDATE,
        f"Updated job: {title}",
        actor.activity_metadata(jobId=job_id, fields=sorted(fields)),
    )
    return await get_job(store, job_id)


async def delete_job(store: DocumentStore, actor: "ActorContext", job_id: str) -> None:
    job = await _owned_job(store, actor, job_id)
    await store.delete(COLLECTION_JOBS, job_id)
    owner = job_owner_id(job)
    title = job.get("title") or job_id

    if owner:
        await adjust_counter(store, COLLECTION_USERS, owner, "jobCount", -1)
        await add_employer_activity(
            store,
            owner,
            ActivityType.JOB_DELETE,
            f"You deleted your job posting: {title}",
            {"jobId": job_id},
        )
    await record_activity(
        store,
        actor.id,
        ActivityType.JOB_DELETE,
        f"Deleted job: {title}",
        actor.activity_metadata(jobId=job_id),
    )


async def toggle_job_status(
    store: DocumentStore,
    actor: "ActorContext",
    job_id: str,
    is_active: bool,
) -> None:
    """Open or close a job for applications."""
    job = await _owned_job(store, actor, job_id)
    await store.update(COLLECTION_JOBS, job_id, {"isActive": is_active, "updatedAt": SERVER_TIMESTAMP})
    state = "activated" if is_active else "deactivated"
    title = job.get("title") or job_id

    await add_employer_activity(
        store,
        job_owner_id(job),
        ActivityType.JOB_STATUS_CHANGE,
        f"You {state} your job posting: {title}",
        {"jobId": job_id, "isActive": is_active},
    )
    await record_activity(
        store,
        actor.id,
        ActivityType.JOB_STATUS_CHANGE,
        f"Job {state}: {title}",
        actor.activity_metadata(jobId=job_id, isActive=is_active),
    )


async def approve_job(store: DocumentStore, admin: "ActorContext", job_id: str) -> None:
    job = await get_job(store, job_id)
    await store.update(
        COLLECTION_JOBS,
        job_id,
        {
            "verificationStatus": VerificationStatus.APPROVED.value,
            "verifiedAt": SERVER_TIMESTAMP,
            "verifiedBy": admin.id,
            "rejectionReason": None,
            "updatedAt": SERVER_TIMESTAMP,
        },
    )
    title = job.get("title") or job_id
    owner = job_owner_id(job)

    if owner:
        await notify_employer(
            store,
            owner,
            "Job Posting Approved",
            f'Your job posting "{title}" has been approved and is now visible to job seekers.',
            "job_approved",
            link=f"/employer/jobs/{job_id}",
            job_id=job_id,
            job_title=title,
        )
        await add_employer_activity(
            store,
            owner,
            ActivityType.JOB_APPROVAL,
            f"Your job posting was approved: {title}",
            {"jobId": job_id},
        )
    await record_activity(
        store,
        admin.id,
        ActivityType.JOB_APPROVAL,
        f"Approved job: {title}",
        admin.activity_metadata(jobId=job_id, employerId=owner),
    )


async def reject_job(
    store: DocumentStore,
    admin: "ActorContext",
    job_id: str,
    reason: Optional[str] = None,
) -> None:
    job = await get_job(store, job_id)
    reason = reason or "No specific reason provided."
    await store.update(
        COLLECTION_JOBS,
        job_id,
        {
            "verificationStatus": VerificationStatus.REJECTED.value,
            "rejectedAt": SERVER_TIMESTAMP,
            "rejectedBy": admin.id,
            "rejectionReason": reason,
            "isActive": False,
            "updatedAt": SERVER_TIMESTAMP,
        },
    )
    title = job.get("title") or job_id
    owner = job_owner_id(job)

    if owner:
        await notify_employer(
            store,
            owner,
            "Job Posting Rejected",
            f'Your job posting "{title}" was rejected. Reason: {reason}',
            "job_rejected",
            link=f"/employer/jobs/{job_id}",
            job_id=job_id,
            job_title=title,
        )
        await add_employer_activity(
            store,
            owner,
            ActivityType.JOB_REJECTION,
            f"Your job posting was rejected: {title}",
            {"jobId": job_id, "reason": reason},
        )
    await record_activity(
        store,
        admin.id,
        ActivityType.JOB_REJECTION,
        f"Rejected job: {title}",
        admin.activity_metadata(jobId=job_id, employerId=owner, reason=reason),
    )


async def list_employer_jobs(store: DocumentStore, employer_id: str) -> List[Dict[str, Any]]:
    """Jobs owned by an employer under either owner field, newest first."""
    by_employer = await store.query(COLLECTION_JOBS, where=[("employerId", "==", employer_id)])
    by_company = await store.query(COLLECTION_JOBS, where=[("companyId", "==", employer_id)])

    jobs: Dict[str, Dict[str, Any]] = {}
    for job in by_employer + by_company:
        jobs[job["id"]] = _normalize(job)
    return sorted(jobs.values(), key=lambda job: str(job.get("createdAt") or ""), reverse=True)


async def list_pending_job_verifications(store: DocumentStore) -> List[Dict[str, Any]]:
    jobs = await store.query(
        COLLECTION_JOBS,
        where=[("verificationStatus", "==", VerificationStatus.PENDING.value)],
        order_by="createdAt",
        descending=True,
    )
    return [_normalize(job) for job in jobs]


async def search_jobs(
    store: DocumentStore,
    text: Optional[str] = None,
    location: Optional[str] = None,
    job_type: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    """Open, approved jobs matching simple case-insensitive filters."""
    jobs = await store.query(
        COLLECTION_JOBS,
        where=[
            ("isActive", "==", True),
            ("verificationStatus", "==", VerificationStatus.APPROVED.value),
        ],
        order_by="createdAt",
        descending=True,
    )

    def matches(job: Dict[str, Any]) -> bool:
        if text:
            haystack = " ".join(
                str(job.get(field) or "") for field in ("title", "description", "companyName")
            ).lower()
            if text.lower() not in haystack:
                return False
        if location and location.lower() not in str(job.get("location") or "").lower():
            return False
        if job_type and str(job.get("jobType") or "").lower() != job_type.lower():
            return False
        return True

    return [_normalize(job) for job in jobs if matches(job)][:limit]


async def require_open_job(store: DocumentStore, job_id: str) -> Dict[str, Any]:
    """A job that accepts applications; NotFound otherwise."""
    job = await get_job(store, job_id)
    if not job.get("isActive", True) or job.get("verificationStatus") == VerificationStatus.REJECTED.value:
        raise NotFound(COLLECTION_JOBS, job_id)
    return job
