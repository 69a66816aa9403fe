# ruff: noqa: B008
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header

from request_desk.exceptions import Forbidden
from request_desk.models.enums import UserRole
from request_desk.schemas.auth import AuthContext
from request_desk.services.storage import AttachmentStore, get_attachment_store


async def get_auth_context(
    x_user_id: str = Header(min_length=1, max_length=100),
    x_role: UserRole = Header(default=UserRole.USER),
) -> AuthContext:
    """Extract the acting user from request headers."""
    return AuthContext(user_id=x_user_id, role=x_role)


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_manager(
    auth: AuthDep,
) -> AuthContext:
    """Require the manager role for the request."""
    if auth.role != UserRole.MANAGER:
        raise Forbidden("Manager access required")
    return auth


ManagerDep = Annotated[AuthContext, Depends(require_manager)]

StoreDep = Annotated[AttachmentStore, Depends(get_attachment_store)]
