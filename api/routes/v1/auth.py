"""
Session endpoints.

Sign-in itself (password, social login) happens at the identity provider;
these endpoints turn an already-authenticated user id into a session and
manage the session's role.
"""

from fastapi import APIRouter, Depends, Response

from api.dependencies import get_current_actor, get_store
from api.schemas.auth import ActorResponse, SessionOpenRequest, SessionResponse, SwitchRoleRequest
from api.services import identity as identity_service
from api.services.identity import ActorContext
from core.security import create_session_token
from database.store import DocumentStore

router = APIRouter(prefix="/auth", tags=["auth"])


def _actor_response(actor: ActorContext) -> ActorResponse:
    return ActorResponse(
        id=actor.id,
        role=actor.role,
        active_role=actor.active_role,
        effective_role=actor.effective_role,
        session_id=actor.session_id,
        first_name=actor.first_name,
        last_name=actor.last_name,
        email=actor.email,
    )


@router.post(
    "/session",
    response_model=SessionResponse,
    status_code=201,
    summary="Open Session",
    description="Create a session for a user signed in by the identity provider. Rejected employers get 403.",
)
async def open_session(
    body: SessionOpenRequest,
    store: DocumentStore = Depends(get_store),
):
    """Persist a session record and return its bearer token."""
    actor = await identity_service.open_session(store, body.user_id)
    token = create_session_token(actor.id, actor.session_id)
    return SessionResponse(access_token=token, actor=_actor_response(actor))


@router.delete(
    "/session",
    status_code=204,
    summary="Close Session",
)
async def close_session(
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    """Revoke the current session."""
    await identity_service.close_session(store, actor)
    return Response(status_code=204)


@router.get("/me", response_model=ActorResponse, summary="Current Actor")
async def get_me(actor: ActorContext = Depends(get_current_actor)):
    return _actor_response(actor)


@router.post(
    "/switch-role",
    response_model=ActorResponse,
    summary="Switch Active Role",
    description="Switch a multi-role account between jobseeker and employer.",
)
async def switch_role(
    body: SwitchRoleRequest,
    actor: ActorContext = Depends(get_current_actor),
    store: DocumentStore = Depends(get_store),
):
    switched = await identity_service.switch_role(store, actor, body.role)
    return _actor_response(switched)
