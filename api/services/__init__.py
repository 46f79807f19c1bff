"""
API Services Layer.

Document-store operations behind the API routes and Celery tasks. Every
operation takes the store explicitly, and an ActorContext where an acting
user matters.
"""

from api.services.verification import (
    derive_verification_status,
    is_employer_blocked,
)

from api.services.activity import (
    record_activity,
    add_employer_activity,
    list_user_activity,
    list_global_activity,
    list_admin_activity,
    list_employer_activity,
)

from api.services.notifications import (
    dispatch_notification,
    add_admin_notification,
    list_notifications,
    mark_notification_read,
    mark_all_notifications_read,
)

from api.services.users import (
    get_profile,
    update_profile,
    get_verification_status,
    set_employer_verification,
    request_multi_role_upgrade,
    approve_multi_role_upgrade,
    reject_multi_role_upgrade,
)

from api.services.jobs import (
    get_job,
    create_job,
    update_job,
    delete_job,
    toggle_job_status,
    approve_job,
    reject_job,
    job_owner_id,
)

from api.services.outbox import (
    project_event,
    project_pending_events,
)

from api.services.applications import (
    create_application,
    update_application_status,
    get_application,
    apply_to_job,
    review_application,
    schedule_interview,
    hire_applicant,
    reject_applicant,
)

from api.services.identity import (
    ActorContext,
    resolve_actor,
    open_session,
    close_session,
    switch_role,
    get_session_record,
)

__all__ = [
    # Verification
    "derive_verification_status",
    "is_employer_blocked",
    # Activity
    "record_activity",
    "add_employer_activity",
    "list_user_activity",
    "list_global_activity",
    "list_admin_activity",
    "list_employer_activity",
    # Notifications
    "dispatch_notification",
    "add_admin_notification",
    "list_notifications",
    "mark_notification_read",
    "mark_all_notifications_read",
    # Users
    "get_profile",
    "update_profile",
    "get_verification_status",
    "set_employer_verification",
    "request_multi_role_upgrade",
    "approve_multi_role_upgrade",
    "reject_multi_role_upgrade",
    # Jobs
    "get_job",
    "create_job",
    "update_job",
    "delete_job",
    "toggle_job_status",
    "approve_job",
    "reject_job",
    "job_owner_id",
    # Outbox
    "project_event",
    "project_pending_events",
    # Applications
    "create_application",
    "update_application_status",
    "get_application",
    "apply_to_job",
    "review_application",
    "schedule_interview",
    "hire_applicant",
    "reject_applicant",
    # Identity
    "ActorContext",
    "resolve_actor",
    "open_session",
    "close_session",
    "switch_role",
    "get_session_record",
]
