"""
Identity context: who is acting, and in which role.

Session records live in the `sessions` collection. An ActorContext is
resolved from one of them once per action and passed explicitly to every
service call; nothing downstream re-reads the session.
"""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Optional

from core.errors import AuthRequired, EmployerBlocked, RoleNotPermitted
from database.collections import COLLECTION_SESSIONS
from database.models.enums import ACTIVE_ROLES, ActivityType, Role
from database.store import SERVER_TIMESTAMP, DocumentStore
from api.services.activity import record_activity
from api.services.users import get_profile
from api.services.verification import is_employer_blocked

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActorContext:
    """The resolved actor for one request."""

    id: str
    role: Role
    active_role: Optional[Role]
    session_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""

    @property
    def effective_role(self) -> Role:
        """Role used for this action: the active role of a multi account, else the base role."""
        if self.role is Role.MULTI and self.active_role in ACTIVE_ROLES:
            return self.active_role
        return self.role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email or self.id

    def activity_metadata(self, **extra: Any) -> dict[str, Any]:
        """Metadata carrying the role context into the activity ledgers."""
        metadata = {"role": self.role.value, "activeRole": self.effective_role.value}
        metadata.update(extra)
        return metadata


def _role_satisfies(role: Role, active_role: Optional[Role], required: Role) -> bool:
    if role is Role.ADMIN:
        return True
    if role is Role.MULTI:
        return required in ACTIVE_ROLES
    return role is required


async def get_session_record(store: DocumentStore, session_id: str) -> Optional[dict[str, Any]]:
    """Point read of a persisted session record; None when absent."""
    if not session_id:
        return None
    return await store.get(COLLECTION_SESSIONS, session_id)


def _context_from_record(record: dict[str, Any], role: Role, active_role: Optional[Role]) -> ActorContext:
    return ActorContext(
        id=record["userId"],
        role=role,
        active_role=active_role,
        session_id=record["id"],
        first_name=record.get("firstName") or "",
        last_name=record.get("lastName") or "",
        email=record.get("email") or "",
    )


async def resolve_actor(
    store: DocumentStore,
    session_id: Optional[str],
    required_role: Optional[Role] = None,
) -> ActorContext:
    """
    Resolve the acting user from a session record.

    A multi-role session whose active role does not match `required_role`
    is rewritten to that role and persisted before returning, so the next
    resolve sees the switched role without an explicit switch.

    Raises:
        AuthRequired: No session record, a revoked one, or one without a usable role
        RoleNotPermitted: The account cannot act in `required_role`
    """
    record = await get_session_record(store, session_id) if session_id else None
    if record is None or record.get("revokedAt") or not record.get("userId"):
        raise AuthRequired()

    role = Role.parse(record.get("role"))
    if role is None:
        raise AuthRequired("Session record has no usable role")

    active_role = Role.parse(record.get("activeRole"))

    if role is Role.MULTI_ROLE_PENDING:
        # No usable active role until an admin approves the upgrade
        if required_role is not None:
            raise RoleNotPermitted(role.value, required_role.value)
        return _context_from_record(record, role, None)

    if required_role is not None and not _role_satisfies(role, active_role, required_role):
        raise RoleNotPermitted(role.value, required_role.value)

    if role is Role.MULTI:
        if active_role not in ACTIVE_ROLES:
            active_role = None
        if required_role in ACTIVE_ROLES and active_role is not required_role:
            await store.update(
                COLLECTION_SESSIONS,
                record["id"],
                {"activeRole": required_role.value, "updatedAt": SERVER_TIMESTAMP},
            )
            logger.info(
                f"Session {record['id']} active role switched "
                f"{active_role.value if active_role else None} -> {required_role.value}"
            )
            active_role = required_role
    else:
        active_role = role

    return _context_from_record(record, role, active_role)


def _login_description(role: Role) -> str:
    if role is Role.EMPLOYER:
        return "Employer logged in"
    if role is Role.JOBSEEKER:
        return "Jobseeker logged in"
    return "User logged in"


async def open_session(store: DocumentStore, user_id: str) -> ActorContext:
    """
    Create a session for a user already authenticated by the identity provider.

    Rejected employers are refused before any session is written.
    """
    profile = await get_profile(store, user_id)
    if is_employer_blocked(profile):
        logger.warning(f"Blocked employer {user_id} attempted to sign in")
        raise EmployerBlocked(profile.get("rejectionReason"))

    role = Role.parse(profile.get("role"))
    if role is None:
        raise ValueError(f"User {user_id} has no recognized role")

    active_role = Role.parse(profile.get("activeRole")) or role
    if role is Role.MULTI and active_role not in ACTIVE_ROLES:
        active_role = Role.EMPLOYER
    if role is Role.MULTI_ROLE_PENDING:
        active_role = None

    session_id = store.new_id()
    await store.set(
        COLLECTION_SESSIONS,
        session_id,
        {
            "sessionId": session_id,
            "userId": user_id,
            "role": role.value,
            "activeRole": active_role.value if active_role else None,
            "firstName": profile.get("firstName") or "",
            "lastName": profile.get("lastName") or "",
            "email": profile.get("email") or "",
            "createdAt": SERVER_TIMESTAMP,
            "updatedAt": SERVER_TIMESTAMP,
        },
    )
    actor = ActorContext(
        id=user_id,
        role=role,
        active_role=active_role,
        session_id=session_id,
        first_name=profile.get("firstName") or "",
        last_name=profile.get("lastName") or "",
        email=profile.get("email") or "",
    )

    await record_activity(
        store,
        user_id,
        ActivityType.LOGIN,
        _login_description(role),
        actor.activity_metadata(email=actor.email),
    )
    return actor


async def close_session(store: DocumentStore, actor: ActorContext) -> None:
    """Revoke the actor's session; later resolves raise AuthRequired."""
    await store.update(
        COLLECTION_SESSIONS,
        actor.session_id,
        {"revokedAt": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP},
    )
    await record_activity(
        store,
        actor.id,
        ActivityType.LOGOUT,
        f"{actor.display_name} logged out",
        actor.activity_metadata(),
    )


async def switch_role(store: DocumentStore, actor: ActorContext, new_role: Role) -> ActorContext:
    """Explicit role switch for approved multi-role accounts."""
    if actor.role is not Role.MULTI:
        raise RoleNotPermitted(actor.role.value, new_role.value)
    if new_role not in ACTIVE_ROLES:
        raise ValueError(f"Cannot switch to role {new_role.value!r}")

    if actor.active_role is not new_role:
        await store.update(
            COLLECTION_SESSIONS,
            actor.session_id,
            {"activeRole": new_role.value, "updatedAt": SERVER_TIMESTAMP},
        )
    switched = dataclasses.replace(actor, active_role=new_role)

    await record_activity(
        store,
        actor.id,
        ActivityType.ROLE_SWITCH,
        f"Switched to {new_role.value} role",
        switched.activity_metadata(),
    )
    return switched
