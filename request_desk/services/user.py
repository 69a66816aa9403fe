from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from request_desk.exceptions import AuthenticationFailed, Conflict, Forbidden
from request_desk.models.enums import UserRole
from request_desk.models.user import User
from request_desk.schemas.user import UserListResponse, UserResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from request_desk.schemas.user import LoginPayload, RegisterPayload

logger = logging.getLogger(__name__)


def _build_user_response(user: User) -> UserResponse:
    return UserResponse(
        user_id=user.user_id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=UserRole(user.role),
        department=user.department,
        is_active=user.is_active,
        created_at=user.created_at,
    )


async def _get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(col(User.email) == email))
    return result.scalar_one_or_none()


async def login(session: AsyncSession, payload: LoginPayload) -> UserResponse:
    """Check an email/password pair. Passwords are compared as stored."""
    user = await _get_user_by_email(session, payload.email)
    if user is None or user.password != payload.password:
        raise AuthenticationFailed("Invalid email or password")
    if not user.is_active:
        raise Forbidden("Your account has been disabled")
    return _build_user_response(user)


async def auto_register(session: AsyncSession, payload: RegisterPayload) -> UserResponse:
    """Create a user on first login, with generated user id and username."""
    if await _get_user_by_email(session, payload.email) is not None:
        raise Conflict("Email already exists. Please use a different email.")

    millis = int(time.time() * 1000)
    user = User(
        user_id=f"USR-{millis}",
        username=f"{payload.email.split('@')[0]}_{millis}",
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name or "User",
        last_name=payload.last_name or "User",
        role=payload.role.value,
        department=payload.department or "General",
        is_active=True,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Email already exists") from None

    logger.info("Registered user %s", user.user_id)
    return _build_user_response(user)


async def list_users(session: AsyncSession, role: UserRole | None = None) -> UserListResponse:
    """List users, optionally filtered by role."""
    query = select(User).order_by(col(User.user_id))
    if role is not None:
        query = query.where(col(User.role) == role.value)
    result = await session.execute(query)
    items = [_build_user_response(u) for u in result.scalars().all()]
    return UserListResponse(items=items, total=len(items))
