"""
Notification dispatcher and inbox operations.

Jobseeker and employer inboxes receive typed notifications through
`dispatch_notification`; the admin inbox is written through
`add_admin_notification` and its helpers. Dispatch is not idempotent:
two calls with the same input produce two entries.
"""

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from api.schemas.notifications import (
    PAYLOAD_MODELS,
    ApplicationReceivedPayload,
    GeneralNotificationPayload,
    HiredPayload,
    InterviewScheduledPayload,
    NotificationPayload,
    RejectedPayload,
)
from core.errors import NotFound
from database.collections import (
    COLLECTION_ADMIN_NOTIFICATIONS,
    COLLECTION_EMPLOYER_NOTIFICATIONS,
    COLLECTION_JOBSEEKER_NOTIFICATIONS,
    COLLECTION_USERS,
)
from database.models.enums import ActivityType, AdminNotificationLevel, NotificationKind, Role
from database.store import SERVER_TIMESTAMP, DocumentStore
from api.services.activity import record_activity

if TYPE_CHECKING:
    from api.services.identity import ActorContext

logger = logging.getLogger(__name__)

ADMIN_BROADCAST = "all"

# Inbox collection and recipient field per role
INBOXES: dict[Role, tuple[str, str]] = {
    Role.JOBSEEKER: (COLLECTION_JOBSEEKER_NOTIFICATIONS, "jobseekerId"),
    Role.EMPLOYER: (COLLECTION_EMPLOYER_NOTIFICATIONS, "employerId"),
    Role.ADMIN: (COLLECTION_ADMIN_NOTIFICATIONS, "adminId"),
}


def _related_job(job_id: Optional[str], job_title: Optional[str]) -> Optional[dict[str, Any]]:
    if not job_id and not job_title:
        return None
    return {"id": job_id, "title": job_title}


def _render(kind: NotificationKind, payload: NotificationPayload) -> dict[str, Any]:
    """Title, message, link and kind-specific fields of an inbox entry."""
    if isinstance(payload, ApplicationReceivedPayload):
        return {
            "title": "New Application Received",
            "message": f"{payload.applicant_name} has applied for {payload.job_title}",
            "link": f"/employer/applicants/{payload.application_id}",
            "relatedJob": _related_job(payload.job_id, payload.job_title),
            "applicationId": payload.application_id,
            "applicantId": payload.applicant_id,
        }

    if isinstance(payload, InterviewScheduledPayload):
        when = payload.interview_date
        if payload.interview_time:
            when = f"{when} at {payload.interview_time}"
        return {
            "title": "Interview Scheduled",
            "message": (
                f"{payload.company_name} has scheduled an interview with you for the "
                f"{payload.job_title} position on {when}."
            ),
            "link": "/jobseeker/applications",
            "relatedJob": _related_job(payload.job_id, payload.job_title),
            "applicationId": payload.application_id,
            "interviewDate": payload.interview_date,
            "interviewTime": payload.interview_time,
            "location": payload.location,
            "notes": payload.notes,
        }

    if isinstance(payload, HiredPayload):
        return {
            "title": "Congratulations! You've been hired",
            "message": f"{payload.company_name} has hired you for the {payload.job_title} position.",
            "link": "/jobseeker/applications",
            "relatedJob": _related_job(payload.job_id, payload.job_title),
            "applicationId": payload.application_id,
            "startDate": payload.start_date,
        }

    if isinstance(payload, RejectedPayload):
        message = (
            f"{payload.company_name} has decided not to move forward with your "
            f"application for {payload.job_title}."
        )
        if payload.reason:
            message = f"{message} Reason: {payload.reason}"
        return {
            "title": "Application Update",
            "message": message,
            "link": "/jobseeker/applications",
            "relatedJob": _related_job(payload.job_id, payload.job_title),
            "applicationId": payload.application_id,
        }

    if isinstance(payload, GeneralNotificationPayload):
        return {
            "title": payload.title,
            "message": payload.message,
            "link": payload.link,
            "relatedJob": _related_job(payload.job_id, payload.job_title),
            "applicationId": payload.application_id,
        }

    raise ValueError(f"No renderer for {kind.value} payload {type(payload).__name__}")


def validate_payload(
    kind: NotificationKind,
    payload: Union[NotificationPayload, Mapping[str, Any]],
) -> NotificationPayload:
    """Coerce a mapping into the payload model for `kind`; reject mismatched models."""
    model = PAYLOAD_MODELS[kind]
    if isinstance(payload, NotificationPayload):
        if not isinstance(payload, model):
            raise ValueError(f"{kind.value} expects {model.__name__}, got {type(payload).__name__}")
        return payload
    return model.model_validate(dict(payload))


async def write_inbox_entry(
    store: DocumentStore,
    role: Role,
    recipient_id: str,
    fields: dict[str, Any],
    notification_id: Optional[str] = None,
) -> str:
    """Write one inbox entry; with `notification_id` the write is create-if-absent."""
    collection, recipient_field = INBOXES[role]
    document = {
        recipient_field: recipient_id,
        **{key: value for key, value in fields.items() if value is not None},
        "isRead": False,
        "createdAt": SERVER_TIMESTAMP,
    }
    if notification_id is None:
        return await store.add(collection, document)
    await store.create(collection, notification_id, document)
    return notification_id


def validate_recipient_role(kind: NotificationKind, recipient_role: Optional[Role]) -> Optional[Role]:
    """
    Check an explicit inbox role against `kind`.

    Returns the inbox role when it is already decided (by the kind or the
    caller), None when it has to come from the recipient's profile.
    """
    fixed = kind.recipient_role
    if recipient_role is None:
        return fixed
    if recipient_role not in (Role.JOBSEEKER, Role.EMPLOYER):
        raise ValueError(f"Notifications go to a jobseeker or employer inbox, not {recipient_role.value!r}")
    if fixed is not None and recipient_role is not fixed:
        raise ValueError(f"{kind.value} notifications go to the {fixed.value} inbox")
    return recipient_role


async def resolve_recipient_role(
    store: DocumentStore,
    kind: NotificationKind,
    recipient_id: str,
    recipient_role: Optional[Role] = None,
) -> Role:
    """Inbox role for a notification; general kinds follow the recipient's acting role."""
    role = validate_recipient_role(kind, recipient_role)
    if role is not None:
        return role

    profile = await store.get(COLLECTION_USERS, recipient_id) or {}
    base_role = Role.parse(profile.get("role"))
    if base_role is Role.EMPLOYER:
        return Role.EMPLOYER
    if base_role is Role.MULTI and Role.parse(profile.get("activeRole")) is Role.EMPLOYER:
        return Role.EMPLOYER
    return Role.JOBSEEKER


async def write_notification(
    store: DocumentStore,
    kind: NotificationKind,
    recipient_id: str,
    payload: Union[NotificationPayload, Mapping[str, Any]],
    notification_id: Optional[str] = None,
    recipient_role: Optional[Role] = None,
) -> str:
    """
    Validate, render and write a notification. Raises on any failure.

    Args:
        store: Document store
        kind: Notification kind; decides the inbox unless it is a general kind
        recipient_id: Recipient user id
        payload: Payload model or mapping for `kind`
        notification_id: Fixed id for idempotent re-runs
        recipient_role: Inbox for `system` / `job_related`; defaults to the
            recipient's acting role

    Returns:
        Notification id
    """
    if not recipient_id:
        raise ValueError("recipient_id is required")
    validated = validate_payload(kind, payload)
    inbox_role = await resolve_recipient_role(store, kind, recipient_id, recipient_role)
    fields = _render(kind, validated)
    fields["type"] = kind.value
    return await write_inbox_entry(store, inbox_role, recipient_id, fields, notification_id)


async def dispatch_notification(
    store: DocumentStore,
    kind: NotificationKind,
    recipient_id: str,
    payload: Union[NotificationPayload, Mapping[str, Any]],
    recipient_role: Optional[Role] = None,
) -> Optional[str]:
    """Write a notification; returns its id, or None after logging a failure."""
    try:
        notification_id = await write_notification(
            store, kind, recipient_id, payload, recipient_role=recipient_role
        )
        logger.info(f"Dispatched {kind.value} notification {notification_id} to {recipient_id}")
        return notification_id
    except Exception:
        logger.exception(f"Error dispatching {kind.value} notification to {recipient_id}")
        return None


async def notify_application_received(
    store: DocumentStore,
    employer_id: str,
    payload: Union[ApplicationReceivedPayload, Mapping[str, Any]],
) -> Optional[str]:
    return await dispatch_notification(store, NotificationKind.APPLICATION_RECEIVED, employer_id, payload)


async def notify_interview_scheduled(
    store: DocumentStore,
    jobseeker_id: str,
    payload: Union[InterviewScheduledPayload, Mapping[str, Any]],
) -> Optional[str]:
    return await dispatch_notification(store, NotificationKind.INTERVIEW_SCHEDULED, jobseeker_id, payload)


async def notify_hired(
    store: DocumentStore,
    jobseeker_id: str,
    payload: Union[HiredPayload, Mapping[str, Any]],
) -> Optional[str]:
    return await dispatch_notification(store, NotificationKind.HIRED, jobseeker_id, payload)


async def notify_rejected(
    store: DocumentStore,
    jobseeker_id: str,
    payload: Union[RejectedPayload, Mapping[str, Any]],
) -> Optional[str]:
    return await dispatch_notification(store, NotificationKind.REJECTED, jobseeker_id, payload)


async def notify_employer(
    store: DocumentStore,
    employer_id: str,
    title: str,
    message: str,
    notification_type: str,
    link: Optional[str] = None,
    job_id: Optional[str] = None,
    job_title: Optional[str] = None,
) -> Optional[str]:
    """Direct employer inbox entry for account and job-posting events."""
    try:
        return await write_inbox_entry(
            store,
            Role.EMPLOYER,
            employer_id,
            {
                "title": title,
                "message": message,
                "type": notification_type,
                "link": link,
                "relatedJob": _related_job(job_id, job_title),
            },
        )
    except Exception:
        logger.exception(f"Error notifying employer {employer_id}")
        return None


# ==================== Admin inbox ===================== #
async def write_admin_notification(
    store: DocumentStore,
    title: str,
    message: str,
    level: AdminNotificationLevel = AdminNotificationLevel.INFO,
    target_admin_id: str = ADMIN_BROADCAST,
    link: Optional[str] = None,
    activity_type: str = "admin",
    related_user_id: Optional[str] = None,
    notification_id: Optional[str] = None,
) -> str:
    """Write an admin inbox entry. Raises on failure."""
    return await write_inbox_entry(
        store,
        Role.ADMIN,
        target_admin_id,
        {
            "title": title,
            "message": message,
            "type": AdminNotificationLevel(level).value,
            "link": link,
            "activityType": activity_type,
            "relatedUserId": related_user_id,
        },
        notification_id,
    )


async def add_admin_notification(
    store: DocumentStore,
    title: str,
    message: str,
    level: AdminNotificationLevel = AdminNotificationLevel.INFO,
    target_admin_id: str = ADMIN_BROADCAST,
    link: Optional[str] = None,
    activity_type: str = "admin",
    related_user_id: Optional[str] = None,
) -> Optional[str]:
    """
    Add a notification to the admin inbox.

    `target_admin_id="all"` broadcasts to every admin.

    Returns:
        Notification id, or None after logging a failure
    """
    try:
        return await write_admin_notification(
            store,
            title,
            message,
            level,
            target_admin_id,
            link,
            activity_type,
            related_user_id,
        )
    except Exception:
        logger.exception("Error adding admin notification")
        return None


async def notify_new_employer_registration(
    store: DocumentStore,
    employer_id: str,
    company_name: str,
) -> Optional[str]:
    return await add_admin_notification(
        store,
        "New Employer Registration",
        f"{company_name} has registered as an employer and is awaiting verification.",
        AdminNotificationLevel.INFO,
        link=f"/admin/verifications/{employer_id}",
        activity_type="employer_registration",
        related_user_id=employer_id,
    )


async def notify_job_verification_required(
    store: DocumentStore,
    job_id: str,
    job_title: str,
    company_name: str,
    employer_id: str,
) -> Optional[str]:
    return await add_admin_notification(
        store,
        "New Job Posting Requires Verification",
        f'{company_name} has posted a new job: "{job_title}" that requires verification.',
        AdminNotificationLevel.INFO,
        link=f"/admin/job-verification/{job_id}",
        activity_type="job_posting",
        related_user_id=employer_id,
    )


async def notify_employer_profile_update(
    store: DocumentStore,
    employer_id: str,
    company_name: str,
) -> Optional[str]:
    return await add_admin_notification(
        store,
        "Employer Profile Updated",
        f"{company_name} has updated their company profile.",
        AdminNotificationLevel.INFO,
        link=f"/admin/employers/{employer_id}",
        activity_type="profile_update",
        related_user_id=employer_id,
    )


async def notify_multi_role_request(
    store: DocumentStore,
    user_id: str,
    user_name: str,
) -> Optional[str]:
    return await add_admin_notification(
        store,
        "Multi-Role Upgrade Requested",
        f"{user_name} has requested access to both jobseeker and employer features.",
        AdminNotificationLevel.INFO,
        link=f"/admin/multi-role-requests/{user_id}",
        activity_type="multi_role_request",
        related_user_id=user_id,
    )


async def notify_system_alert(
    store: DocumentStore,
    title: str,
    message: str,
    level: AdminNotificationLevel = AdminNotificationLevel.WARNING,
) -> Optional[str]:
    return await add_admin_notification(store, title, message, level, activity_type="system")


# ==================== Inbox reads and read state ===================== #
def inbox_for(actor: "ActorContext") -> tuple[str, str]:
    """Inbox collection and recipient field for the actor's effective role."""
    role = Role.ADMIN if actor.is_admin else actor.effective_role
    try:
        return INBOXES[role]
    except KeyError:
        raise ValueError(f"Role {role.value!r} has no notification inbox")


def _recipients(actor: "ActorContext") -> list[str]:
    if actor.is_admin:
        return [actor.id, ADMIN_BROADCAST]
    return [actor.id]


async def list_notifications(
    store: DocumentStore,
    actor: "ActorContext",
    unread_only: bool = False,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Newest-first inbox of the actor."""
    collection, recipient_field = inbox_for(actor)
    where = [(recipient_field, "in", _recipients(actor))]
    if unread_only:
        where.append(("isRead", "==", False))
    return await store.query(
        collection,
        where=where,
        order_by="createdAt",
        descending=True,
        limit=limit,
    )


async def count_unread_notifications(store: DocumentStore, actor: "ActorContext") -> int:
    collection, recipient_field = inbox_for(actor)
    return await store.count(
        collection,
        where=[(recipient_field, "in", _recipients(actor)), ("isRead", "==", False)],
    )


async def mark_notification_read(
    store: DocumentStore,
    actor: "ActorContext",
    notification_id: str,
) -> None:
    """
    Mark one of the actor's notifications read and record the action.

    Raises:
        NotFound: No such notification in the actor's inbox
    """
    collection, recipient_field = inbox_for(actor)
    notification = await store.get(collection, notification_id)
    if notification is None or notification.get(recipient_field) not in _recipients(actor):
        raise NotFound(collection, notification_id)

    if not notification.get("isRead"):
        await store.update(collection, notification_id, {"isRead": True, "readAt": SERVER_TIMESTAMP})

    await record_activity(
        store,
        actor.id,
        ActivityType.NOTIFICATION_READ,
        f"Read notification: {notification.get('title') or notification_id}",
        actor.activity_metadata(
            notificationId=notification_id,
            notificationType=notification.get("type"),
        ),
    )


async def mark_all_notifications_read(store: DocumentStore, actor: "ActorContext") -> int:
    """Mark every unread notification of the actor read in one transaction."""
    collection, recipient_field = inbox_for(actor)
    unread = await store.query(
        collection,
        where=[(recipient_field, "in", _recipients(actor)), ("isRead", "==", False)],
    )
    if not unread:
        return 0

    async with store.transaction("mark_all_notifications_read") as tx:
        for notification in unread:
            await tx.update(collection, notification["id"], {"isRead": True, "readAt": SERVER_TIMESTAMP})

    await record_activity(
        store,
        actor.id,
        ActivityType.NOTIFICATIONS_ALL_READ,
        f"Marked {len(unread)} notifications as read",
        actor.activity_metadata(count=len(unread)),
    )
    return len(unread)
