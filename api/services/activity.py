"""
Activity ledger writer.

One activity event fans out to:
    - activity_log_all   (global ledger)
    - userActivities     (per-user "my activity" ledger)
    - activity_jobseek   (effective role jobseeker, with name/email captured now)
    - all_admin          (base role admin, with adminName/adminEmail)

There is no role-scoped employer entry here; employer feeds are written
separately through `add_employer_activity`.
"""

import logging
from typing import Any, Optional, Union

from core.errors import PartialFanout
from core.security import mask_pii
from database.collections import (
    COLLECTION_ACTIVITY_ADMIN,
    COLLECTION_ACTIVITY_ALL,
    COLLECTION_ACTIVITY_EMPLOYER,
    COLLECTION_ACTIVITY_JOBSEEKER,
    COLLECTION_USER_ACTIVITIES,
    COLLECTION_USERS,
)
from database.models.enums import ActivityType, Role
from database.store import SERVER_TIMESTAMP, DocumentStore

logger = logging.getLogger(__name__)


def _type_value(activity_type: Union[ActivityType, str]) -> str:
    return activity_type.value if isinstance(activity_type, ActivityType) else str(activity_type)


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


async def _append(
    store: DocumentStore,
    collection: str,
    data: dict[str, Any],
    entry_id: Optional[str],
) -> str:
    # A fixed entry id makes the write idempotent (used by the outbox projector)
    if entry_id is None:
        return await store.add(collection, data)
    await store.create(collection, entry_id, data)
    return entry_id


async def fan_out_activity(
    store: DocumentStore,
    user_id: str,
    activity_type: Union[ActivityType, str],
    description: str,
    metadata: Optional[dict[str, Any]] = None,
    entry_id: Optional[str] = None,
) -> list[str]:
    """
    Write one activity into every ledger it belongs to.

    Args:
        store: Document store
        user_id: Acting user
        activity_type: Activity type
        description: Human readable description
        metadata: Free-form metadata; `activeRole` here overrides the profile
        entry_id: Fixed document id for idempotent re-runs

    Returns:
        Names of the ledgers written

    Raises:
        PartialFanout: A write or the profile read failed; earlier writes stay
    """
    metadata = dict(metadata or {})
    type_value = _type_value(activity_type)
    completed: list[str] = []
    step = COLLECTION_ACTIVITY_ALL

    try:
        await _append(
            store,
            COLLECTION_ACTIVITY_ALL,
            {
                "userId": user_id,
                "type": type_value,
                "description": description,
                "metadata": metadata,
                "timestamp": SERVER_TIMESTAMP,
            },
            entry_id,
        )
        completed.append(step)

        step = COLLECTION_USER_ACTIVITIES
        await _append(
            store,
            COLLECTION_USER_ACTIVITIES,
            {
                "userId": user_id,
                "type": type_value,
                "description": description,
                "timestamp": SERVER_TIMESTAMP,
                "metadata": metadata,
            },
            entry_id,
        )
        completed.append(step)

        step = COLLECTION_USERS
        profile = await store.get(COLLECTION_USERS, user_id)
        if profile is None:
            logger.debug(f"No profile for {user_id}; role-scoped ledgers skipped")
            return completed

        effective_role = Role.parse(
            _first_present(metadata.get("activeRole"), profile.get("activeRole"), profile.get("role"))
        )
        if effective_role is Role.JOBSEEKER:
            step = COLLECTION_ACTIVITY_JOBSEEKER
            await _append(
                store,
                COLLECTION_ACTIVITY_JOBSEEKER,
                {
                    "userId": user_id,
                    "type": type_value,
                    "description": description,
                    "timestamp": SERVER_TIMESTAMP,
                    "metadata": {
                        **metadata,
                        "firstName": profile.get("firstName") or "",
                        "lastName": profile.get("lastName") or "",
                        "email": profile.get("email") or "",
                    },
                },
                entry_id,
            )
            completed.append(step)

        # Base role, not the active role
        if Role.parse(profile.get("role")) is Role.ADMIN:
            step = COLLECTION_ACTIVITY_ADMIN
            await _append(
                store,
                COLLECTION_ACTIVITY_ADMIN,
                {
                    "userId": user_id,
                    "type": type_value,
                    "description": description,
                    "timestamp": SERVER_TIMESTAMP,
                    "metadata": metadata,
                    "adminName": f"{profile.get('firstName') or ''} {profile.get('lastName') or ''}".strip(),
                    "adminEmail": profile.get("email") or "",
                },
                entry_id,
            )
            completed.append(step)
    except Exception as exc:
        raise PartialFanout(type_value, completed, step, exc) from exc

    return completed


async def record_activity(
    store: DocumentStore,
    user_id: str,
    activity_type: Union[ActivityType, str],
    description: str,
    metadata: Optional[dict[str, Any]] = None,
) -> None:
    """
    Record an activity; fire-and-forget.

    Duplicate calls produce duplicate entries. Failures are logged and never
    raised, and completed ledger writes are not rolled back.
    """
    try:
        written = await fan_out_activity(store, user_id, activity_type, description, metadata)
        logger.debug(f"Activity {_type_value(activity_type)} for {user_id} written to {written}")
    except PartialFanout as failure:
        logger.warning(
            f"Activity fan-out incomplete: {failure}",
            extra={"user_id": user_id, "metadata": mask_pii(metadata or {})},
        )
    except Exception:
        logger.exception(f"Error recording activity for {user_id}")


async def write_employer_activity(
    store: DocumentStore,
    employer_id: str,
    activity_type: Union[ActivityType, str],
    message: str,
    metadata: Optional[dict[str, Any]] = None,
    entry_id: Optional[str] = None,
) -> str:
    """Append to the employer's own activity feed. Raises on failure."""
    return await _append(
        store,
        COLLECTION_ACTIVITY_EMPLOYER,
        {
            "employerId": employer_id,
            "type": _type_value(activity_type),
            "message": message,
            "metadata": dict(metadata or {}),
            "createdAt": SERVER_TIMESTAMP,
        },
        entry_id,
    )


async def add_employer_activity(
    store: DocumentStore,
    employer_id: str,
    activity_type: Union[ActivityType, str],
    message: str,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[str]:
    """Fire-and-forget employer feed entry; returns the entry id or None on failure."""
    try:
        return await write_employer_activity(store, employer_id, activity_type, message, metadata)
    except Exception:
        logger.exception(f"Error adding employer activity for {employer_id}")
        return None


async def list_user_activity(store: DocumentStore, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
    return await store.query(
        COLLECTION_USER_ACTIVITIES,
        where=[("userId", "==", user_id)],
        order_by="timestamp",
        descending=True,
        limit=limit,
    )


async def list_global_activity(
    store: DocumentStore,
    activity_type: Optional[str] = None,
    limit: int = 100,
) -> list[dict[str, Any]]:
    where = [("type", "==", activity_type)] if activity_type else []
    return await store.query(
        COLLECTION_ACTIVITY_ALL,
        where=where,
        order_by="timestamp",
        descending=True,
        limit=limit,
    )


async def list_admin_activity(store: DocumentStore, limit: int = 100) -> list[dict[str, Any]]:
    return await store.query(
        COLLECTION_ACTIVITY_ADMIN,
        order_by="timestamp",
        descending=True,
        limit=limit,
    )


async def list_jobseeker_activity(store: DocumentStore, limit: int = 100) -> list[dict[str, Any]]:
    return await store.query(
        COLLECTION_ACTIVITY_JOBSEEKER,
        order_by="timestamp",
        descending=True,
        limit=limit,
    )


async def list_employer_activity(
    store: DocumentStore,
    employer_id: str,
    limit: int = 50,
) -> list[dict[str, Any]]:
    return await store.query(
        COLLECTION_ACTIVITY_EMPLOYER,
        where=[("employerId", "==", employer_id)],
        order_by="createdAt",
        descending=True,
        limit=limit,
    )
