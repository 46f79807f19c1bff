"""Tests for session records and actor resolution."""

import pytest

from api.services.identity import (
    close_session,
    open_session,
    resolve_actor,
    switch_role,
)
from core.errors import AuthRequired, EmployerBlocked, NotFound, RoleNotPermitted
from database.collections import (
    COLLECTION_ACTIVITY_ALL,
    COLLECTION_SESSIONS,
    COLLECTION_USER_ACTIVITIES,
)
from database.models.enums import Role


class TestOpenSession:
    @pytest.mark.asyncio
    async def test_persists_session_and_records_login(self, store, seed_user):
        await seed_user("ana", "jobseeker")

        actor = await open_session(store, "ana")

        record = await store.get(COLLECTION_SESSIONS, actor.session_id)
        assert record["userId"] == "ana"
        assert record["role"] == "jobseeker"
        assert record["activeRole"] == "jobseeker"
        assert actor.effective_role is Role.JOBSEEKER

        logins = await store.query(COLLECTION_USER_ACTIVITIES, where=[("type", "==", "login")])
        assert len(logins) == 1
        assert logins[0]["description"] == "Jobseeker logged in"

    @pytest.mark.asyncio
    async def test_blocked_employer_gets_no_session(self, store, seed_user):
        await seed_user(
            "boss",
            "employer",
            verificationRejected=True,
            rejectionReason="Invalid registration documents",
        )

        with pytest.raises(EmployerBlocked) as exc_info:
            await open_session(store, "boss")

        assert exc_info.value.reason == "Invalid registration documents"
        assert await store.count(COLLECTION_SESSIONS) == 0
        assert await store.count(COLLECTION_ACTIVITY_ALL) == 0

    @pytest.mark.asyncio
    async def test_blocked_employer_default_reason(self, store, seed_user):
        await seed_user("boss", "employer", status="rejected")

        with pytest.raises(EmployerBlocked) as exc_info:
            await open_session(store, "boss")
        assert exc_info.value.reason == "No specific reason provided."

    @pytest.mark.asyncio
    async def test_unknown_user(self, store):
        with pytest.raises(NotFound):
            await open_session(store, "ghost")

    @pytest.mark.asyncio
    async def test_multi_account_defaults_to_employer(self, store, seed_user):
        await seed_user("mo", "multi")

        actor = await open_session(store, "mo")
        assert actor.active_role is Role.EMPLOYER

    @pytest.mark.asyncio
    async def test_legacy_pending_role_spelling(self, store, seed_user):
        await seed_user("pat", "multi-role")

        actor = await open_session(store, "pat")
        assert actor.role is Role.MULTI_ROLE_PENDING
        assert actor.active_role is None


class TestResolveActor:
    @pytest.mark.asyncio
    async def test_missing_session(self, store):
        with pytest.raises(AuthRequired):
            await resolve_actor(store, "no-such-session")

    @pytest.mark.asyncio
    async def test_empty_session_id(self, store):
        with pytest.raises(AuthRequired):
            await resolve_actor(store, None)

    @pytest.mark.asyncio
    async def test_revoked_session(self, store, seed_user):
        await seed_user("ana", "jobseeker")
        actor = await open_session(store, "ana")

        await close_session(store, actor)

        with pytest.raises(AuthRequired):
            await resolve_actor(store, actor.session_id)
        logouts = await store.query(COLLECTION_USER_ACTIVITIES, where=[("type", "==", "logout")])
        assert len(logouts) == 1

    @pytest.mark.asyncio
    async def test_session_without_role(self, store):
        await store.set(COLLECTION_SESSIONS, "s1", {"userId": "ana", "role": "wizard"})
        with pytest.raises(AuthRequired):
            await resolve_actor(store, "s1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role,required", [
        ("jobseeker", Role.EMPLOYER),
        ("employer", Role.JOBSEEKER),
        ("employer", Role.ADMIN),
        ("multi", Role.ADMIN),
    ])
    async def test_role_not_permitted(self, store, role, required):
        await store.set(COLLECTION_SESSIONS, "s1", {"userId": "u1", "role": role, "activeRole": "employer"})

        with pytest.raises(RoleNotPermitted) as exc_info:
            await resolve_actor(store, "s1", required)
        assert exc_info.value.required_role == required.value

    @pytest.mark.asyncio
    async def test_admin_satisfies_any_role(self, store):
        await store.set(COLLECTION_SESSIONS, "s1", {"userId": "root", "role": "admin", "activeRole": "admin"})

        actor = await resolve_actor(store, "s1", Role.EMPLOYER)
        assert actor.is_admin

    @pytest.mark.asyncio
    async def test_pending_upgrade_cannot_act(self, store):
        await store.set(COLLECTION_SESSIONS, "s1", {"userId": "pat", "role": "multi-role-pending"})

        with pytest.raises(RoleNotPermitted):
            await resolve_actor(store, "s1", Role.JOBSEEKER)

        actor = await resolve_actor(store, "s1")
        assert actor.active_role is None
        assert actor.effective_role is Role.MULTI_ROLE_PENDING

    @pytest.mark.asyncio
    async def test_multi_role_switch_is_persisted(self, store):
        await store.set(COLLECTION_SESSIONS, "s1", {"userId": "mo", "role": "multi", "activeRole": "employer"})

        actor = await resolve_actor(store, "s1", Role.JOBSEEKER)
        assert actor.effective_role is Role.JOBSEEKER
        assert (await store.get(COLLECTION_SESSIONS, "s1"))["activeRole"] == "jobseeker"

        again = await resolve_actor(store, "s1")
        assert again.effective_role is Role.JOBSEEKER

    @pytest.mark.asyncio
    async def test_single_role_active_role_is_base_role(self, store):
        await store.set(COLLECTION_SESSIONS, "s1", {"userId": "ana", "role": "jobseeker", "activeRole": "employer"})

        actor = await resolve_actor(store, "s1")
        assert actor.active_role is Role.JOBSEEKER


class TestSwitchRole:
    @pytest.mark.asyncio
    async def test_multi_account_switch(self, store, seed_user):
        await seed_user("mo", "multi", activeRole="employer")
        actor = await open_session(store, "mo")

        switched = await switch_role(store, actor, Role.JOBSEEKER)

        assert switched.effective_role is Role.JOBSEEKER
        resolved = await resolve_actor(store, actor.session_id)
        assert resolved.effective_role is Role.JOBSEEKER
        switches = await store.query(COLLECTION_USER_ACTIVITIES, where=[("type", "==", "role_switch")])
        assert len(switches) == 1

    @pytest.mark.asyncio
    async def test_single_role_account_cannot_switch(self, store, actor):
        with pytest.raises(RoleNotPermitted):
            await switch_role(store, actor("ana", Role.JOBSEEKER), Role.EMPLOYER)

    @pytest.mark.asyncio
    async def test_cannot_switch_to_admin(self, store, actor):
        with pytest.raises(ValueError):
            await switch_role(store, actor("mo", Role.MULTI), Role.ADMIN)
