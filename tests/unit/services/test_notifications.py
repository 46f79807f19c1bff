"""Tests for the notification dispatcher and inbox read state."""

from unittest.mock import AsyncMock, patch

import pytest

from api.schemas.notifications import HiredPayload, InterviewScheduledPayload
from api.services.notifications import (
    add_admin_notification,
    count_unread_notifications,
    dispatch_notification,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
    notify_application_received,
    notify_hired,
    notify_interview_scheduled,
    notify_new_employer_registration,
    notify_rejected,
    notify_system_alert,
    validate_recipient_role,
    validate_payload,
    write_notification,
)
from core.errors import NotFound
from database.collections import (
    COLLECTION_ADMIN_NOTIFICATIONS,
    COLLECTION_EMPLOYER_NOTIFICATIONS,
    COLLECTION_JOBSEEKER_NOTIFICATIONS,
    COLLECTION_USER_ACTIVITIES,
)
from database.models.enums import AdminNotificationLevel, NotificationKind, Role

INTERVIEW = {
    "application_id": "app-1",
    "job_id": "job-1",
    "job_title": "Line Cook",
    "company_name": "Acme Foods",
    "interview_date": "2024-05-01",
    "interview_time": "10:00",
    "location": "HQ",
}


class TestDispatch:
    @pytest.mark.asyncio
    async def test_interview_notification_rendered(self, store):
        notification_id = await notify_interview_scheduled(store, "ana", INTERVIEW)

        entry = await store.get(COLLECTION_JOBSEEKER_NOTIFICATIONS, notification_id)
        assert entry["jobseekerId"] == "ana"
        assert entry["type"] == "interview_scheduled"
        assert entry["title"] == "Interview Scheduled"
        assert "2024-05-01 at 10:00" in entry["message"]
        assert entry["isRead"] is False
        assert entry["relatedJob"] == {"id": "job-1", "title": "Line Cook"}
        assert "notes" not in entry

    @pytest.mark.asyncio
    async def test_application_received_goes_to_employer_inbox(self, store):
        notification_id = await notify_application_received(
            store,
            "boss",
            {
                "application_id": "app-1",
                "job_title": "Line Cook",
                "company_name": "Acme Foods",
                "applicant_name": "Ana Tester",
            },
        )

        entry = await store.get(COLLECTION_EMPLOYER_NOTIFICATIONS, notification_id)
        assert entry["employerId"] == "boss"
        assert entry["title"] == "New Application Received"
        assert entry["message"] == "Ana Tester has applied for Line Cook"

    @pytest.mark.asyncio
    async def test_dispatch_is_not_idempotent(self, store):
        first = await dispatch_notification(store, NotificationKind.INTERVIEW_SCHEDULED, "ana", INTERVIEW)
        second = await dispatch_notification(store, NotificationKind.INTERVIEW_SCHEDULED, "ana", INTERVIEW)

        assert first != second
        assert await store.count(COLLECTION_JOBSEEKER_NOTIFICATIONS) == 2

    @pytest.mark.asyncio
    async def test_fixed_id_write_is_create_if_absent(self, store):
        await write_notification(store, NotificationKind.INTERVIEW_SCHEDULED, "ana", INTERVIEW, "evt:jobseeker")
        await write_notification(store, NotificationKind.INTERVIEW_SCHEDULED, "ana", INTERVIEW, "evt:jobseeker")

        assert await store.count(COLLECTION_JOBSEEKER_NOTIFICATIONS) == 1

    @pytest.mark.asyncio
    async def test_invalid_payload_returns_none(self, store):
        payload = {**INTERVIEW}
        del payload["interview_date"]

        assert await dispatch_notification(store, NotificationKind.INTERVIEW_SCHEDULED, "ana", payload) is None
        assert await store.count(COLLECTION_JOBSEEKER_NOTIFICATIONS) == 0

    @pytest.mark.asyncio
    async def test_missing_recipient_returns_none(self, store):
        assert await dispatch_notification(store, NotificationKind.INTERVIEW_SCHEDULED, "", INTERVIEW) is None

    @pytest.mark.asyncio
    async def test_store_failure_returns_none(self, store):
        with patch.object(store, "add", new=AsyncMock(side_effect=RuntimeError("store down"))):
            assert await dispatch_notification(store, NotificationKind.INTERVIEW_SCHEDULED, "ana", INTERVIEW) is None

    def test_mismatched_payload_model_rejected(self):
        payload = HiredPayload(application_id="a", job_title="t", company_name="c")
        with pytest.raises(ValueError):
            validate_payload(NotificationKind.INTERVIEW_SCHEDULED, payload)

    def test_unknown_fields_rejected(self):
        with pytest.raises(ValueError):
            validate_payload(NotificationKind.INTERVIEW_SCHEDULED, {**INTERVIEW, "salary": 100})

    def test_model_instance_accepted(self):
        payload = InterviewScheduledPayload(**INTERVIEW)
        assert validate_payload(NotificationKind.INTERVIEW_SCHEDULED, payload) is payload


class TestAdminNotifications:
    @pytest.mark.asyncio
    async def test_broadcast_visible_to_every_admin(self, store, actor):
        await add_admin_notification(store, "Heads up", "Maintenance tonight", AdminNotificationLevel.WARNING)
        await add_admin_notification(store, "Just you", "Direct", target_admin_id="root")

        root = await list_notifications(store, actor("root", Role.ADMIN))
        other = await list_notifications(store, actor("ops", Role.ADMIN))

        assert len(root) == 2
        assert [entry["title"] for entry in other] == ["Heads up"]
        assert other[0]["type"] == "warning"

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, store):
        with patch.object(store, "add", new=AsyncMock(side_effect=RuntimeError("store down"))):
            assert await add_admin_notification(store, "t", "m") is None


class TestReadState:
    @pytest.mark.asyncio
    async def test_mark_read_and_count(self, store, actor):
        ana = actor("ana", Role.JOBSEEKER)
        first = await notify_interview_scheduled(store, "ana", INTERVIEW)
        await notify_interview_scheduled(store, "ana", INTERVIEW)

        assert await count_unread_notifications(store, ana) == 2
        await mark_notification_read(store, ana, first)

        assert await count_unread_notifications(store, ana) == 1
        assert (await store.get(COLLECTION_JOBSEEKER_NOTIFICATIONS, first))["isRead"] is True
        assert len(await list_notifications(store, ana, unread_only=True)) == 1
        reads = await store.query(COLLECTION_USER_ACTIVITIES, where=[("type", "==", "notification_read")])
        assert reads[0]["metadata"]["notificationId"] == first

    @pytest.mark.asyncio
    async def test_cannot_read_someone_elses_notification(self, store, actor):
        notification_id = await notify_interview_scheduled(store, "ana", INTERVIEW)

        with pytest.raises(NotFound):
            await mark_notification_read(store, actor("ben", Role.JOBSEEKER), notification_id)
        assert (await store.get(COLLECTION_JOBSEEKER_NOTIFICATIONS, notification_id))["isRead"] is False

    @pytest.mark.asyncio
    async def test_mark_all_read(self, store, actor):
        ana = actor("ana", Role.JOBSEEKER)
        for _ in range(3):
            await notify_interview_scheduled(store, "ana", INTERVIEW)
        await notify_interview_scheduled(store, "ben", INTERVIEW)

        assert await mark_all_notifications_read(store, ana) == 3
        assert await mark_all_notifications_read(store, ana) == 0
        assert await count_unread_notifications(store, actor("ben", Role.JOBSEEKER)) == 1

    @pytest.mark.asyncio
    async def test_multi_account_inbox_follows_active_role(self, store, actor):
        await notify_interview_scheduled(store, "mo", INTERVIEW)

        as_employer = actor("mo", Role.MULTI, Role.EMPLOYER)
        as_jobseeker = actor("mo", Role.MULTI, Role.JOBSEEKER)
        assert await count_unread_notifications(store, as_employer) == 0
        assert await count_unread_notifications(store, as_jobseeker) == 1

    @pytest.mark.asyncio
    async def test_pending_account_has_no_inbox(self, store, actor):
        with pytest.raises(ValueError):
            await list_notifications(store, actor("pat", Role.MULTI_ROLE_PENDING))

    @pytest.mark.asyncio
    async def test_admin_reads_broadcast(self, store, actor):
        notification_id = await add_admin_notification(store, "Heads up", "All admins")

        await mark_notification_read(store, actor("root", Role.ADMIN), notification_id)
        assert (await store.get(COLLECTION_ADMIN_NOTIFICATIONS, notification_id))["isRead"] is True


class TestKindWrappers:
    @pytest.mark.asyncio
    async def test_hired_and_rejected_land_in_jobseeker_inbox(self, store):
        common = {"application_id": "app-1", "job_title": "Line Cook", "company_name": "Acme Foods"}

        hired_id = await notify_hired(store, "ana", {**common, "start_date": "2024-06-01"})
        rejected_id = await notify_rejected(store, "ben", {**common, "reason": "Position filled"})

        hired = await store.get(COLLECTION_JOBSEEKER_NOTIFICATIONS, hired_id)
        rejected = await store.get(COLLECTION_JOBSEEKER_NOTIFICATIONS, rejected_id)
        assert hired["type"] == "hired"
        assert hired["startDate"] == "2024-06-01"
        assert rejected["jobseekerId"] == "ben"
        assert rejected["message"].endswith("Reason: Position filled")

    @pytest.mark.asyncio
    async def test_admin_helpers_broadcast(self, store):
        registration_id = await notify_new_employer_registration(store, "boss", "Acme Foods")
        alert_id = await notify_system_alert(store, "Outbox backlog", "12 events pending")

        registration = await store.get(COLLECTION_ADMIN_NOTIFICATIONS, registration_id)
        alert = await store.get(COLLECTION_ADMIN_NOTIFICATIONS, alert_id)
        assert registration["adminId"] == "all"
        assert registration["relatedUserId"] == "boss"
        assert registration["activityType"] == "employer_registration"
        assert alert["type"] == AdminNotificationLevel.WARNING.value
        assert alert["activityType"] == "system"


SYSTEM_NOTICE = {"title": "Scheduled maintenance", "message": "Posting is paused tonight."}


class TestGeneralKindRouting:
    """`system` and `job_related` land in the inbox of the role the recipient acts as."""

    @pytest.mark.asyncio
    async def test_system_notification_reaches_employer(self, store, seed_user, actor):
        await seed_user("boss", "employer")

        notification_id = await dispatch_notification(store, NotificationKind.SYSTEM, "boss", SYSTEM_NOTICE)

        inbox = await list_notifications(store, actor("boss", Role.EMPLOYER))
        assert [entry["id"] for entry in inbox] == [notification_id]
        assert inbox[0]["employerId"] == "boss"
        assert await store.count(COLLECTION_JOBSEEKER_NOTIFICATIONS) == 0

    @pytest.mark.asyncio
    async def test_multi_account_follows_active_role(self, store, seed_user, actor):
        await seed_user("mo", "multi", activeRole="jobseeker")

        await dispatch_notification(store, NotificationKind.JOB_RELATED, "mo", SYSTEM_NOTICE)

        assert await store.count(COLLECTION_JOBSEEKER_NOTIFICATIONS) == 1
        assert await list_notifications(store, actor("mo", Role.MULTI, Role.EMPLOYER)) == []

    @pytest.mark.asyncio
    async def test_explicit_role_overrides_profile(self, store, seed_user):
        await seed_user("mo", "multi", activeRole="jobseeker")

        notification_id = await dispatch_notification(
            store, NotificationKind.SYSTEM, "mo", SYSTEM_NOTICE, recipient_role=Role.EMPLOYER
        )

        assert (await store.get(COLLECTION_EMPLOYER_NOTIFICATIONS, notification_id))["employerId"] == "mo"

    @pytest.mark.asyncio
    async def test_unknown_recipient_defaults_to_jobseeker(self, store):
        await dispatch_notification(store, NotificationKind.SYSTEM, "ghost", SYSTEM_NOTICE)
        assert await store.count(COLLECTION_JOBSEEKER_NOTIFICATIONS) == 1

    @pytest.mark.parametrize("kind,role", [
        (NotificationKind.INTERVIEW_SCHEDULED, Role.EMPLOYER),
        (NotificationKind.APPLICATION_RECEIVED, Role.JOBSEEKER),
        (NotificationKind.SYSTEM, Role.ADMIN),
    ])
    def test_conflicting_role_rejected(self, kind, role):
        with pytest.raises(ValueError):
            validate_recipient_role(kind, role)

    def test_fixed_kinds_keep_their_inbox(self):
        assert validate_recipient_role(NotificationKind.APPLICATION_RECEIVED, None) is Role.EMPLOYER
        assert validate_recipient_role(NotificationKind.HIRED, None) is Role.JOBSEEKER
        assert validate_recipient_role(NotificationKind.SYSTEM, None) is None
