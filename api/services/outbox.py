"""
Outbox: canonical domain events and their projection.

Workflow operations stage an event with `stage_event` inside the same
transaction as the primary write. `project_event` later derives the ledger
and notification entries from it. Every derived entry uses the id
`{event_id}:{target}` and is written create-if-absent, so projecting the
same event twice never duplicates anything.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from core.errors import NotFound
from database.collections import COLLECTION_OUTBOX_EVENTS
from database.models.enums import (
    ActivityType,
    AdminNotificationLevel,
    ApplicationStatus,
    NotificationKind,
    OutboxEventKind,
    OutboxStatus,
    Role,
)
from database.store import SERVER_TIMESTAMP, DocumentStore, Transaction, new_document_id
from api.services.activity import fan_out_activity, write_employer_activity
from api.services.notifications import write_admin_notification, write_notification

logger = logging.getLogger(__name__)

Projector = Callable[[DocumentStore, str, Dict[str, Any]], Awaitable[None]]


def derived_id(event_id: str, target: str) -> str:
    return f"{event_id}:{target}"


async def stage_event(tx: Transaction, kind: OutboxEventKind, payload: Dict[str, Any]) -> str:
    """Write a pending outbox event inside an open transaction."""
    event_id = new_document_id()
    await tx.set(
        COLLECTION_OUTBOX_EVENTS,
        event_id,
        {
            "kind": kind.value,
            "payload": payload,
            "status": OutboxStatus.PENDING.value,
            "attempts": 0,
            "createdAt": SERVER_TIMESTAMP,
        },
    )
    return event_id


async def _project_application_submitted(store: DocumentStore, event_id: str, payload: Dict[str, Any]) -> None:
    application_id = payload["applicationId"]
    jobseeker_id = payload["jobseekerId"]
    employer_id = payload.get("employerId")
    job_title = payload.get("jobTitle") or ""
    company_name = payload.get("companyName") or ""
    applicant_name = payload.get("applicantName") or jobseeker_id

    await fan_out_activity(
        store,
        jobseeker_id,
        ActivityType.APPLICATION_SUBMITTED,
        f"Applied for {job_title} at {company_name}",
        {
            "jobId": payload.get("jobId"),
            "applicationId": application_id,
            "activeRole": Role.JOBSEEKER.value,
        },
        entry_id=derived_id(event_id, "activity"),
    )

    if employer_id:
        await write_notification(
            store,
            NotificationKind.APPLICATION_RECEIVED,
            employer_id,
            {
                "application_id": application_id,
                "job_id": payload.get("jobId"),
                "job_title": job_title,
                "company_name": company_name,
                "applicant_id": jobseeker_id,
                "applicant_name": applicant_name,
            },
            notification_id=derived_id(event_id, "employer"),
        )
        await write_employer_activity(
            store,
            employer_id,
            ActivityType.APPLICATION_SUBMITTED,
            f"{applicant_name} applied for {job_title}",
            {"jobId": payload.get("jobId"), "applicationId": application_id},
            entry_id=derived_id(event_id, "employer-activity"),
        )
    else:
        logger.warning(f"Application {application_id} has no owning employer; employer entries skipped")

    await write_admin_notification(
        store,
        "New Job Application",
        f'{applicant_name} has applied for the position: "{job_title}".',
        AdminNotificationLevel.INFO,
        link=f"/admin/applications/{application_id}",
        activity_type="job_application",
        related_user_id=jobseeker_id,
        notification_id=derived_id(event_id, "admin"),
    )


_STATUS_NOTIFICATIONS = {
    ApplicationStatus.INTERVIEW_SCHEDULED: NotificationKind.INTERVIEW_SCHEDULED,
    ApplicationStatus.HIRED: NotificationKind.HIRED,
    ApplicationStatus.REJECTED: NotificationKind.REJECTED,
}


def _jobseeker_notice(payload: Dict[str, Any]) -> Optional[tuple[NotificationKind, Dict[str, Any]]]:
    """Notification kind and payload for the jobseeker, or None for silent transitions."""
    status = ApplicationStatus.try_parse(payload.get("newStatus"))
    details = payload.get("details") or {}
    common = {
        "application_id": payload["applicationId"],
        "job_id": payload.get("jobId"),
        "job_title": payload.get("jobTitle") or "",
        "company_name": payload.get("companyName") or "",
    }

    kind = _STATUS_NOTIFICATIONS.get(status)
    if kind is NotificationKind.INTERVIEW_SCHEDULED:
        return kind, {
            **common,
            "interview_date": details.get("interviewDate") or "",
            "interview_time": details.get("interviewTime"),
            "location": details.get("location"),
            "notes": details.get("notes"),
        }
    if kind is NotificationKind.HIRED:
        return kind, {**common, "start_date": details.get("startDate")}
    if kind is NotificationKind.REJECTED:
        return kind, {**common, "reason": details.get("reason")}

    if status in (ApplicationStatus.UNDER_REVIEW, ApplicationStatus.SHORTLISTED):
        return NotificationKind.JOB_RELATED, {
            "title": "Application Update",
            "message": (
                f"Your application for {common['job_title']} at {common['company_name']} "
                f"is now {status.label.lower()}."
            ),
            "link": "/jobseeker/applications",
            "job_id": common["job_id"],
            "job_title": common["job_title"],
            "application_id": common["application_id"],
        }
    return None


async def _project_application_status_changed(store: DocumentStore, event_id: str, payload: Dict[str, Any]) -> None:
    application_id = payload["applicationId"]
    new_status = payload.get("newStatus")
    parsed = ApplicationStatus.try_parse(new_status)
    label = parsed.label if parsed else str(new_status)
    job_title = payload.get("jobTitle") or ""

    await fan_out_activity(
        store,
        payload["actorId"],
        ActivityType.APPLICATION_STATUS_CHANGE,
        f"Application for {job_title} moved to {label}",
        {
            "applicationId": application_id,
            "jobId": payload.get("jobId"),
            "previousStatus": payload.get("previousStatus"),
            "newStatus": new_status,
            "role": payload.get("actorRole"),
            "activeRole": payload.get("actorActiveRole"),
        },
        entry_id=derived_id(event_id, "activity"),
    )

    jobseeker_id = payload.get("jobseekerId")
    notice = _jobseeker_notice(payload)
    if jobseeker_id and notice is not None:
        kind, notification = notice
        await write_notification(
            store,
            kind,
            jobseeker_id,
            notification,
            notification_id=derived_id(event_id, "jobseeker"),
            recipient_role=Role.JOBSEEKER,
        )

    employer_id = payload.get("employerId")
    if employer_id:
        await write_employer_activity(
            store,
            employer_id,
            ActivityType.APPLICATION_STATUS_CHANGE,
            f"{label}: {payload.get('applicantName') or 'applicant'} for {job_title}",
            {"applicationId": application_id, "newStatus": new_status},
            entry_id=derived_id(event_id, "employer-activity"),
        )


PROJECTORS: Dict[OutboxEventKind, Projector] = {
    OutboxEventKind.APPLICATION_SUBMITTED: _project_application_submitted,
    OutboxEventKind.APPLICATION_STATUS_CHANGED: _project_application_status_changed,
}


async def project_event(store: DocumentStore, event_id: str) -> bool:
    """
    Project one outbox event.

    Returns:
        True when the event is (now) projected, False when projection failed
        and the event stays pending for a later run

    Raises:
        NotFound: No such event
    """
    event = await store.get(COLLECTION_OUTBOX_EVENTS, event_id)
    if event is None:
        raise NotFound(COLLECTION_OUTBOX_EVENTS, event_id)
    if event.get("status") == OutboxStatus.PROJECTED.value:
        return True

    attempts = int(event.get("attempts") or 0) + 1
    try:
        projector = PROJECTORS[OutboxEventKind(event.get("kind"))]
        await projector(store, event_id, event.get("payload") or {})
    except Exception as exc:
        logger.warning(
            f"Projection of outbox event {event_id} ({event.get('kind')}) failed on attempt {attempts}: {exc}",
            exc_info=True,
        )
        await store.update(
            COLLECTION_OUTBOX_EVENTS,
            event_id,
            {"attempts": attempts, "lastError": str(exc)[:500], "lastAttemptAt": SERVER_TIMESTAMP},
        )
        return False

    await store.update(
        COLLECTION_OUTBOX_EVENTS,
        event_id,
        {
            "status": OutboxStatus.PROJECTED.value,
            "attempts": attempts,
            "lastError": None,
            "projectedAt": SERVER_TIMESTAMP,
        },
    )
    logger.debug(f"Projected outbox event {event_id}")
    return True


async def project_pending_events(store: DocumentStore, limit: Optional[int] = None) -> Dict[str, int]:
    """Project every pending event, oldest first. Safe to re-run."""
    pending = await store.query(
        COLLECTION_OUTBOX_EVENTS,
        where=[("status", "==", OutboxStatus.PENDING.value)],
        order_by="createdAt",
        limit=limit,
    )
    summary = {"pending": len(pending), "projected": 0, "failed": 0}
    for event in pending:
        if await project_event(store, event["id"]):
            summary["projected"] += 1
        else:
            summary["failed"] += 1

    if pending:
        logger.info(f"Outbox projection run: {summary}")
    return summary
