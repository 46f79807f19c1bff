"""Notification payload and API schemas."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from database.models.enums import AdminNotificationLevel, NotificationKind


# ==================== Dispatch payloads ===================== #
class NotificationPayload(BaseModel):
    """Base payload; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


class ApplicationNotificationPayload(NotificationPayload):
    application_id: str = Field(description="Application the notification is about")
    job_id: Optional[str] = Field(None, description="Job applied to")
    job_title: str = Field(description="Job title at the time of the event")
    company_name: str = Field(description="Employer company name")


class ApplicationReceivedPayload(ApplicationNotificationPayload):
    applicant_id: Optional[str] = Field(None, description="Jobseeker who applied")
    applicant_name: str = Field(description="Display name of the applicant")


class InterviewScheduledPayload(ApplicationNotificationPayload):
    interview_date: str = Field(description="Interview date")
    interview_time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class HiredPayload(ApplicationNotificationPayload):
    start_date: Optional[str] = None


class RejectedPayload(ApplicationNotificationPayload):
    reason: Optional[str] = None


class GeneralNotificationPayload(NotificationPayload):
    title: str
    message: str
    link: Optional[str] = None
    job_id: Optional[str] = None
    job_title: Optional[str] = None
    application_id: Optional[str] = None


PAYLOAD_MODELS: dict[NotificationKind, type[NotificationPayload]] = {
    NotificationKind.APPLICATION_RECEIVED: ApplicationReceivedPayload,
    NotificationKind.INTERVIEW_SCHEDULED: InterviewScheduledPayload,
    NotificationKind.HIRED: HiredPayload,
    NotificationKind.REJECTED: RejectedPayload,
    NotificationKind.SYSTEM: GeneralNotificationPayload,
    NotificationKind.JOB_RELATED: GeneralNotificationPayload,
}


# ==================== API ===================== #
class NotificationResponse(BaseModel):
    """Inbox entry as returned to clients."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    message: str = ""
    type: str = ""
    isRead: bool = False
    createdAt: Optional[str] = None
    link: Optional[str] = None


class MarkAllReadResponse(BaseModel):
    updated: int = Field(ge=0, description="Number of notifications marked read")


class AdminNotificationCreate(BaseModel):
    """Body for creating an admin notification."""

    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=2000)
    type: AdminNotificationLevel = AdminNotificationLevel.INFO
    target_admin_id: str = Field(default="all", description="Admin id, or 'all' for broadcast")
    link: Optional[str] = None
