from enum import Enum as PyEnum
from typing import Any, Optional


# ==================== Roles ===================== #
class Role(str, PyEnum):
    """Account roles as stored on the user document."""

    JOBSEEKER = "jobseeker"
    EMPLOYER = "employer"
    ADMIN = "admin"
    MULTI = "multi"  # approved jobseeker + employer account
    MULTI_ROLE_PENDING = "multi-role-pending"  # upgrade awaiting admin approval

    @property
    def is_switchable(self) -> bool:
        return self is Role.MULTI

    @classmethod
    def parse(cls, value: Any) -> "Role | None":
        """Decode a stored role, including the legacy `multi-role` spelling."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower().replace("_", "-")
        if normalized == "multi-role":
            return cls.MULTI_ROLE_PENDING
        try:
            return cls(normalized)
        except ValueError:
            return None


# Roles a multi account can act as
ACTIVE_ROLES = frozenset({Role.JOBSEEKER, Role.EMPLOYER})


# ============ Verification Enums ============ #
class VerificationStatus(str, PyEnum):
    """Canonical employer (and job) verification state."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ============ Application Enums ============ #
class ApplicationStatus(str, PyEnum):
    """Known statuses for a job application."""

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    SHORTLISTED = "shortlisted"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    HIRED = "hired"
    REJECTED = "rejected"

    def is_terminal(self) -> bool:
        return self in APPLICATION_STATUS_TERMINALS

    def can_transition_to(self, new: "ApplicationStatus") -> bool:
        allowed = APPLICATION_STATUS_TRANSITIONS.get(self, set())
        return new in allowed

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @classmethod
    def try_parse(cls, value: Any) -> "ApplicationStatus | None":
        if value is None:
            return None
        try:
            normalized = str(value).strip().lower().replace(" ", "_").replace("-", "_")
            return cls(normalized)
        except ValueError:
            return None


APPLICATION_STATUS_TERMINALS = frozenset({ApplicationStatus.HIRED, ApplicationStatus.REJECTED})

# Advisory only: the record updater logs transitions outside this table but
# still applies them.
APPLICATION_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.PENDING: {
        ApplicationStatus.UNDER_REVIEW,
        ApplicationStatus.SHORTLISTED,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.UNDER_REVIEW: {
        ApplicationStatus.SHORTLISTED,
        ApplicationStatus.INTERVIEW_SCHEDULED,
        ApplicationStatus.HIRED,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.SHORTLISTED: {
        ApplicationStatus.INTERVIEW_SCHEDULED,
        ApplicationStatus.HIRED,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.INTERVIEW_SCHEDULED: {
        ApplicationStatus.HIRED,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.HIRED: set(),
    ApplicationStatus.REJECTED: set(),
}


# ============ Notification Enums ============ #
class NotificationKind(str, PyEnum):
    """Kinds of inbox notifications the dispatcher can write."""

    APPLICATION_RECEIVED = "application_received"  # employer-facing
    INTERVIEW_SCHEDULED = "interview_scheduled"
    HIRED = "hired"
    REJECTED = "rejected"
    SYSTEM = "system"
    JOB_RELATED = "job_related"

    @property
    def recipient_role(self) -> Optional[Role]:
        """Inbox role the kind always goes to; None for the general kinds."""
        if self is NotificationKind.APPLICATION_RECEIVED:
            return Role.EMPLOYER
        if self in (NotificationKind.SYSTEM, NotificationKind.JOB_RELATED):
            return None
        return Role.JOBSEEKER


class AdminNotificationLevel(str, PyEnum):
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    ERROR = "error"


# ============ Activity Enums ============ #
class ActivityType(str, PyEnum):
    """Activity types written by the engine itself; callers may use others."""

    LOGIN = "login"
    LOGOUT = "logout"
    ROLE_SWITCH = "role_switch"
    JOB_POST = "job_post"
    JOB_UPDATE = "job_update"
    JOB_DELETE = "job_delete"
    JOB_STATUS_CHANGE = "job_status_change"
    JOB_APPROVAL = "approval"
    JOB_REJECTION = "job_rejection"
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_STATUS_CHANGE = "application_status_change"
    NOTIFICATION_READ = "notification_read"
    NOTIFICATIONS_ALL_READ = "notifications_all_read"
    PROFILE_UPDATE = "profile_update"
    MULTI_ROLE_REQUEST = "multi_role_request"
    MULTI_ROLE_DECISION = "multi_role_decision"
    EMPLOYER_VERIFICATION = "employer_verification"


# ============ Outbox Enums ============ #
class OutboxStatus(str, PyEnum):
    PENDING = "pending"
    PROJECTED = "projected"


class OutboxEventKind(str, PyEnum):
    """Canonical domain events written atomically with a primary change."""

    APPLICATION_SUBMITTED = "application.submitted"
    APPLICATION_STATUS_CHANGED = "application.status_changed"
