# ruff: noqa: B008
from __future__ import annotations

from fastapi import APIRouter, Query, status

from request_desk.db import SessionDep
from request_desk.models.enums import UserRole
from request_desk.schemas.user import LoginPayload, RegisterPayload, UserListResponse, UserResponse
from request_desk.services import user as user_service

users_router = APIRouter(prefix="/users", tags=["users"])


@users_router.post("/login", response_model=UserResponse)
async def login(
    payload: LoginPayload,
    session: SessionDep,
) -> UserResponse:
    return await user_service.login(session, payload)


@users_router.post("/auto-register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def auto_register(
    payload: RegisterPayload,
    session: SessionDep,
) -> UserResponse:
    """Create an account for an email that is not registered yet."""
    return await user_service.auto_register(session, payload)


@users_router.get("", response_model=UserListResponse)
async def list_users(
    session: SessionDep,
    role: UserRole | None = Query(default=None),
) -> UserListResponse:
    return await user_service.list_users(session, role)
