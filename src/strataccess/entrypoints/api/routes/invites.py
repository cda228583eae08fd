"""Invite API routes."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr

from strataccess.core.auth.registration import RegistrationTokenService
from strataccess.core.auth.types import Role
from strataccess.core.outcomes import LimitExceeded
from strataccess.entrypoints.api.deps import get_registration_service
from strataccess.entrypoints.api.errors import limit_exceeded_http
from strataccess.entrypoints.api.middleware.session_auth import RequireUserManagement

router = APIRouter(prefix="/invites", tags=["invites"])


class CreateInviteRequest(BaseModel):
    """Invite creation body."""

    email: EmailStr | None = None
    role: Role = Role.LEADER


class InviteResponse(BaseModel):
    """A newly issued invite. The token is shown once."""

    token: str
    registration_path: str
    intended_email: str | None
    role: Role
    expires_at: datetime


@router.post("", response_model=InviteResponse, status_code=201)
async def create_invite(
    body: CreateInviteRequest,
    principal: RequireUserManagement,
    service: Annotated[RegistrationTokenService, Depends(get_registration_service)],
) -> InviteResponse:
    """Invite someone into the caller's organization.

    Needs the manage_users capability and a free user seat on the plan.
    Open invites count against the seats.
    """
    issued = await service.issue_invite(principal, email=body.email, role=body.role)
    if isinstance(issued, LimitExceeded):
        raise limit_exceeded_http(issued)
    return InviteResponse(
        token=issued.token,
        registration_path=f"/register/{issued.token}",
        intended_email=issued.record.intended_email,
        role=issued.record.role,
        expires_at=issued.record.expires_at,
    )
