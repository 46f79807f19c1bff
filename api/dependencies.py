"""FastAPI dependencies for dependency injection."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from api.services.identity import ActorContext, resolve_actor
from core.errors import AuthRequired
from core.security import decode_session_token
from database.engine import AsyncSessionLocal
from database.models.enums import Role
from database.store import DocumentStore


security = HTTPBearer(auto_error=False)


def get_store() -> DocumentStore:
    """Document store bound to the application's session factory."""
    return DocumentStore(AsyncSessionLocal)


async def get_session_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Verified claims of the bearer session token."""
    if credentials is None:
        raise AuthRequired()
    return decode_session_token(credentials.credentials)


def require_actor(required_role: Optional[Role] = None):
    """
    Dependency factory resolving the ActorContext for a request.

    Usage:
        @router.post("/jobs")
        async def create(actor: ActorContext = Depends(require_actor(Role.EMPLOYER))):
            ...
    """

    async def dependency(
        request: Request,
        claims: dict = Depends(get_session_claims),
        store: DocumentStore = Depends(get_store),
    ) -> ActorContext:
        actor = await resolve_actor(store, claims["sid"], required_role)
        if actor.id != claims["sub"]:
            raise AuthRequired("Session token does not match its session")
        request.state.user_id = actor.id
        return actor

    return dependency


get_current_actor = require_actor()
require_jobseeker = require_actor(Role.JOBSEEKER)
require_employer = require_actor(Role.EMPLOYER)
require_admin = require_actor(Role.ADMIN)
