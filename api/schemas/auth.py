"""Session schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from database.models.enums import Role


class SessionOpenRequest(BaseModel):
    """Opens a session for a user the identity provider has already signed in."""

    user_id: str = Field(min_length=1, description="Authenticated user id")


class SwitchRoleRequest(BaseModel):
    role: Role = Field(description="jobseeker or employer")


class ActorResponse(BaseModel):
    """The resolved actor of the current session."""

    id: str
    role: Role
    active_role: Optional[Role] = None
    effective_role: Role
    session_id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    actor: ActorResponse
