"""Tests for job postings, verification and counters."""

from unittest.mock import patch

import pytest

from api.services.jobs import (
    adjust_counter,
    approve_job,
    create_job,
    delete_job,
    get_job,
    list_employer_jobs,
    list_pending_job_verifications,
    reject_job,
    search_jobs,
    toggle_job_status,
    update_job,
)
from core.errors import NotFound, RoleNotPermitted
from database.collections import (
    COLLECTION_ACTIVITY_ALL,
    COLLECTION_ACTIVITY_EMPLOYER,
    COLLECTION_ADMIN_NOTIFICATIONS,
    COLLECTION_EMPLOYER_NOTIFICATIONS,
    COLLECTION_JOBS,
    COLLECTION_USERS,
)
from database.models.enums import Role
from database.store import DocumentStore


@pytest.mark.asyncio
async def test_create_job_starts_pending(store, seed_user, actor):
    await seed_user("boss", "employer", companyName="Acme Foods")

    job_id = await create_job(
        store,
        actor("boss", Role.EMPLOYER),
        {"title": "Line Cook", "location": "Lisbon", "applicationsCount": 99},
    )

    job = await get_job(store, job_id)
    assert job["employerId"] == "boss"
    assert job["companyName"] == "Acme Foods"
    assert job["verificationStatus"] == "pending"
    assert job["applicationsCount"] == 0
    assert job["isActive"] is True
    assert (await store.get(COLLECTION_USERS, "boss"))["jobCount"] == 1
    assert await store.count(COLLECTION_ADMIN_NOTIFICATIONS) == 1
    assert await store.count(COLLECTION_ACTIVITY_EMPLOYER) == 1


@pytest.mark.asyncio
async def test_create_job_survives_ledger_and_inbox_failures(store, seed_user, actor):
    await seed_user("boss", "employer", companyName="Acme Foods")
    original_add = DocumentStore.add

    async def jobs_only_add(self, collection, data):
        if collection != COLLECTION_JOBS:
            raise RuntimeError("ledger unavailable")
        return await original_add(self, collection, data)

    with patch.object(DocumentStore, "add", jobs_only_add):
        job_id = await create_job(store, actor("boss", Role.EMPLOYER), {"title": "Line Cook"})

    assert (await get_job(store, job_id))["title"] == "Line Cook"
    assert (await store.get(COLLECTION_USERS, "boss"))["jobCount"] == 1
    assert await store.count(COLLECTION_ACTIVITY_EMPLOYER) == 0
    assert await store.count(COLLECTION_ADMIN_NOTIFICATIONS) == 0
    assert await store.count(COLLECTION_ACTIVITY_ALL) == 0


@pytest.mark.asyncio
async def test_create_job_requires_title(store, seed_user, actor):
    await seed_user("boss", "employer")
    with pytest.raises(ValueError):
        await create_job(store, actor("boss", Role.EMPLOYER), {"location": "Lisbon"})


@pytest.mark.asyncio
async def test_update_resets_verification(store, seed_job, actor):
    job_id = await seed_job("boss")

    job = await update_job(store, actor("boss", Role.EMPLOYER), job_id, {"title": "Head Chef", "employerId": "x"})

    assert job["title"] == "Head Chef"
    assert job["employerId"] == "boss"
    assert job["verificationStatus"] == "pending"


@pytest.mark.asyncio
async def test_non_owner_cannot_edit(store, seed_job, actor):
    job_id = await seed_job("boss")
    with pytest.raises(RoleNotPermitted):
        await update_job(store, actor("rival", Role.EMPLOYER), job_id, {"title": "Mine now"})


@pytest.mark.asyncio
async def test_legacy_company_id_owner(store, actor):
    job_id = await store.add(COLLECTION_JOBS, {"title": "Baker", "companyId": "boss", "isActive": True})

    await toggle_job_status(store, actor("boss", Role.EMPLOYER), job_id, False)

    assert (await get_job(store, job_id))["isActive"] is False
    assert [job["id"] for job in await list_employer_jobs(store, "boss")] == [job_id]


@pytest.mark.asyncio
async def test_approve_and_reject(store, seed_job, actor):
    job_id = await seed_job("boss", verificationStatus="pending")
    root = actor("root", Role.ADMIN)

    assert [job["id"] for job in await list_pending_job_verifications(store)] == [job_id]
    await approve_job(store, root, job_id)
    assert (await get_job(store, job_id))["verificationStatus"] == "approved"
    assert await list_pending_job_verifications(store) == []

    await reject_job(store, root, job_id, "Misleading salary")
    job = await get_job(store, job_id)
    assert job["verificationStatus"] == "rejected"
    assert job["rejectionReason"] == "Misleading salary"
    assert job["isActive"] is False

    inbox = await store.query(COLLECTION_EMPLOYER_NOTIFICATIONS, where=[("employerId", "==", "boss")])
    assert sorted(entry["type"] for entry in inbox) == ["job_approved", "job_rejected"]


@pytest.mark.asyncio
async def test_delete_job(store, seed_user, seed_job, actor):
    await seed_user("boss", "employer", jobCount=1)
    job_id = await seed_job("boss")

    await delete_job(store, actor("boss", Role.EMPLOYER), job_id)

    with pytest.raises(NotFound):
        await get_job(store, job_id)
    assert (await store.get(COLLECTION_USERS, "boss"))["jobCount"] == 0


@pytest.mark.asyncio
async def test_search_only_open_approved_jobs(store, seed_job):
    visible = await seed_job("boss", "Line Cook", location="Lisbon", jobType="full-time")
    await seed_job("boss", "Line Cook", verificationStatus="pending")
    await seed_job("boss", "Line Cook", isActive=False)
    await seed_job("boss", "Dishwasher", location="Porto")

    results = await search_jobs(store, text="cook", location="lisbon", job_type="Full-Time")
    assert [job["id"] for job in results] == [visible]


@pytest.mark.asyncio
async def test_counter_floors_at_zero(store, seed_job):
    job_id = await seed_job("boss")

    assert await adjust_counter(store, COLLECTION_JOBS, job_id, "applicationsCount", -1) == 0
    assert await adjust_counter(store, COLLECTION_JOBS, job_id, "applicationsCount", 2) == 2
    assert await adjust_counter(store, COLLECTION_JOBS, "missing", "applicationsCount", 1) is None
