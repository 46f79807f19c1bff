"""
User service functions.

Profile reads and edits, employer verification decisions and the
multi-role upgrade flow (request -> admin approve / reject).
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional
import logging

from core.errors import RoleNotPermitted
from database.collections import COLLECTION_USERS
from database.models.enums import ACTIVE_ROLES, ActivityType, Role, VerificationStatus
from database.store import SERVER_TIMESTAMP, DocumentStore
from api.services.activity import record_activity
from api.services.notifications import (
    notify_employer,
    notify_employer_profile_update,
    notify_multi_role_request,
)
from api.services.verification import derive_verification_status

if TYPE_CHECKING:
    from api.services.identity import ActorContext

logger = logging.getLogger(__name__)

# Fields only the verification and multi-role flows may change
PROTECTED_PROFILE_FIELDS = frozenset({
    "id",
    "role",
    "activeRole",
    "status",
    "isVerified",
    "verificationRejected",
    "rejectionReason",
    "multiRoleRequested",
    "previousRole",
    "createdAt",
})


async def get_profile(store: DocumentStore, user_id: str) -> Dict[str, Any]:
    """
    Get a user profile.

    Raises:
        NotFound: No such user
    """
    return await store.get_entity(COLLECTION_USERS, user_id)


async def update_profile(
    store: DocumentStore,
    actor: "ActorContext",
    changes: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Update the actor's own profile.

    Args:
        store: Document store
        actor: Acting user
        changes: Profile fields to merge

    Returns:
        Updated profile
    """
    protected = PROTECTED_PROFILE_FIELDS.intersection(changes)
    if protected:
        raise ValueError(f"Fields cannot be changed here: {', '.join(sorted(protected))}")
    if not changes:
        raise ValueError("No profile fields to update")

    await store.update(COLLECTION_USERS, actor.id, {**changes, "updatedAt": SERVER_TIMESTAMP})
    profile = await get_profile(store, actor.id)

    await record_activity(
        store,
        actor.id,
        ActivityType.PROFILE_UPDATE,
        "Updated profile",
        actor.activity_metadata(fields=sorted(changes)),
    )
    if actor.effective_role is Role.EMPLOYER:
        await notify_employer_profile_update(
            store, actor.id, profile.get("companyName") or actor.display_name
        )
    return profile


async def get_verification_status(store: DocumentStore, user_id: str) -> VerificationStatus:
    profile = await get_profile(store, user_id)
    return derive_verification_status(profile)


async def list_employers_by_verification(
    store: DocumentStore,
    status: VerificationStatus = VerificationStatus.PENDING,
) -> List[Dict[str, Any]]:
    """Employer accounts whose derived verification status equals `status`."""
    employers = await store.query(
        COLLECTION_USERS,
        where=[("role", "in", [Role.EMPLOYER.value, Role.MULTI.value])],
        order_by="createdAt",
        descending=True,
    )
    return [
        employer for employer in employers
        if derive_verification_status(employer) is status
    ]


async def set_employer_verification(
    store: DocumentStore,
    admin: "ActorContext",
    employer_id: str,
    approved: bool,
    reason: Optional[str] = None,
) -> VerificationStatus:
    """
    Record an admin decision on an employer account.

    A rejection blocks the employer at their next sign-in.
    """
    profile = await get_profile(store, employer_id)
    if Role.parse(profile.get("role")) not in (Role.EMPLOYER, Role.MULTI):
        raise ValueError(f"User {employer_id} is not an employer")

    if approved:
        fields = {
            "status": VerificationStatus.APPROVED.value,
            "isVerified": True,
            "verificationRejected": False,
            "rejectionReason": None,
            "verifiedAt": SERVER_TIMESTAMP,
            "verifiedBy": admin.id,
        }
    else:
        fields = {
            "status": VerificationStatus.REJECTED.value,
            "isVerified": False,
            "verificationRejected": True,
            "rejectionReason": reason or "No specific reason provided.",
            "rejectedAt": SERVER_TIMESTAMP,
            "rejectedBy": admin.id,
        }
    await store.update(COLLECTION_USERS, employer_id, {**fields, "updatedAt": SERVER_TIMESTAMP})
    status = VerificationStatus.APPROVED if approved else VerificationStatus.REJECTED

    company = profile.get("companyName") or profile.get("email") or employer_id
    await record_activity(
        store,
        admin.id,
        ActivityType.EMPLOYER_VERIFICATION,
        f"{'Approved' if approved else 'Rejected'} employer account: {company}",
        admin.activity_metadata(employerId=employer_id, reason=reason),
    )
    if approved:
        await notify_employer(
            store,
            employer_id,
            "Account Verified",
            "Your employer account has been verified. You can now post jobs.",
            "verification",
            link="/employer/dashboard",
        )
    return status


async def request_multi_role_upgrade(
    store: DocumentStore,
    actor: "ActorContext",
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Ask for both jobseeker and employer access.

    The account moves to `multi-role-pending` and has no usable active role
    until an admin decides; the previous role is kept for a rejection.
    """
    if actor.role not in ACTIVE_ROLES:
        raise RoleNotPermitted(actor.role.value, Role.MULTI_ROLE_PENDING.value)

    await store.update(
        COLLECTION_USERS,
        actor.id,
        {
            "role": Role.MULTI_ROLE_PENDING.value,
            "previousRole": actor.role.value,
            "multiRoleRequested": True,
            "multiRoleRequestDate": SERVER_TIMESTAMP,
            "multiRoleDetails": dict(details or {}),
            "updatedAt": SERVER_TIMESTAMP,
        },
    )
    await record_activity(
        store,
        actor.id,
        ActivityType.MULTI_ROLE_REQUEST,
        "Requested multi-role access",
        actor.activity_metadata(),
    )
    await notify_multi_role_request(store, actor.id, actor.display_name)


async def list_multi_role_requests(store: DocumentStore) -> List[Dict[str, Any]]:
    return await store.query(
        COLLECTION_USERS,
        where=[("role", "in", [Role.MULTI_ROLE_PENDING.value, "multi-role"])],
        order_by="multiRoleRequestDate",
        descending=True,
    )


async def _pending_upgrade(store: DocumentStore, user_id: str) -> Dict[str, Any]:
    profile = await get_profile(store, user_id)
    if Role.parse(profile.get("role")) is not Role.MULTI_ROLE_PENDING:
        raise ValueError(f"User {user_id} has no pending multi-role request")
    return profile


async def approve_multi_role_upgrade(
    store: DocumentStore,
    admin: "ActorContext",
    user_id: str,
) -> Role:
    """Grant multi-role access; the active role defaults to employer."""
    profile = await _pending_upgrade(store, user_id)
    active_role = Role.parse(profile.get("activeRole"))
    if active_role not in ACTIVE_ROLES:
        active_role = Role.EMPLOYER

    await store.update(
        COLLECTION_USERS,
        user_id,
        {
            "role": Role.MULTI.value,
            "activeRole": active_role.value,
            "multiRoleRequested": False,
            "multiRoleApprovedAt": SERVER_TIMESTAMP,
            "multiRoleApprovedBy": admin.id,
            "updatedAt": SERVER_TIMESTAMP,
        },
    )
    await record_activity(
        store,
        admin.id,
        ActivityType.MULTI_ROLE_DECISION,
        f"Approved multi-role access for {profile.get('email') or user_id}",
        admin.activity_metadata(userId=user_id, approved=True),
    )
    return active_role


async def reject_multi_role_upgrade(
    store: DocumentStore,
    admin: "ActorContext",
    user_id: str,
    reason: Optional[str] = None,
) -> Role:
    """Deny the upgrade and restore the role the user had before requesting."""
    profile = await _pending_upgrade(store, user_id)
    previous_role = Role.parse(profile.get("previousRole"))
    if previous_role not in ACTIVE_ROLES:
        previous_role = Role.JOBSEEKER

    await store.update(
        COLLECTION_USERS,
        user_id,
        {
            "role": previous_role.value,
            "activeRole": previous_role.value,
            "multiRoleRequested": False,
            "multiRoleRejectedAt": SERVER_TIMESTAMP,
            "multiRoleRejectionReason": reason,
            "updatedAt": SERVER_TIMESTAMP,
        },
    )
    await record_activity(
        store,
        admin.id,
        ActivityType.MULTI_ROLE_DECISION,
        f"Rejected multi-role access for {profile.get('email') or user_id}",
        admin.activity_metadata(userId=user_id, approved=False, reason=reason),
    )
    return previous_role
