"""Collection names (schema-in-code).

The document store has no DDL per collection: a collection exists as soon as
a document is written under its path. These constants are the single source
of truth for collection names, including the legacy spellings the web client
already reads from.
"""

# Core entities
COLLECTION_USERS = "users"
COLLECTION_JOBS = "jobs"
COLLECTION_APPLICATIONS = "applications"
COLLECTION_SESSIONS = "sessions"

# Subcollection under users/{uid}
SUBCOLLECTION_APPLIED_JOBS = "appliedJobs"

# Activity ledgers
COLLECTION_ACTIVITY_ALL = "activity_log_all"
COLLECTION_USER_ACTIVITIES = "userActivities"
COLLECTION_ACTIVITY_JOBSEEKER = "activity_jobseek"
COLLECTION_ACTIVITY_ADMIN = "all_admin"
COLLECTION_ACTIVITY_EMPLOYER = "activity_emp"

# Notification inboxes
COLLECTION_JOBSEEKER_NOTIFICATIONS = "jobseekernotifications"
COLLECTION_EMPLOYER_NOTIFICATIONS = "employernotifications"
COLLECTION_ADMIN_NOTIFICATIONS = "adminNotifications"

# Outbox
COLLECTION_OUTBOX_EVENTS = "outbox_events"


def applied_jobs_path(jobseeker_id: str) -> str:
    """Path of a jobseeker's applied-jobs mirror subcollection."""
    return f"{COLLECTION_USERS}/{jobseeker_id}/{SUBCOLLECTION_APPLIED_JOBS}"
