"""Manager lookup and resolution of loosely-typed manager references.

Clients refer to the approving manager either by a ``Manager.manager_id`` or
by the manager's ``User.user_id``. ``resolve_manager`` normalizes both forms
to a manager id, creating the manager record from the user on first use.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from request_desk.models.manager import Manager
from request_desk.models.request import ApprovalRequest
from request_desk.models.user import User
from request_desk.schemas.manager import ManagerListResponse, ManagerResponse, ManagerSummary

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from request_desk.schemas.request import ApprovingManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionFailure:
    """Why a manager reference could not be resolved."""

    input_id: str
    message: str


@dataclass(frozen=True)
class ManagerResolution:
    """Outcome of resolving a manager reference.

    On failure ``manager_id`` is the caller's input, unchanged.
    """

    manager_id: str | None
    created: bool = False
    failure: ResolutionFailure | None = None


def build_manager_response(manager: Manager) -> ManagerResponse:
    return ManagerResponse(
        manager_id=manager.manager_id,
        manager_name=manager.manager_name,
        email=manager.email,
        department=manager.department,
    )


async def _resolve(session: AsyncSession, input_id: str) -> ManagerResolution:
    existing = await session.get(Manager, input_id)
    if existing is not None:
        return ManagerResolution(existing.manager_id)

    user = await session.get(User, input_id)
    if user is None:
        # Left to the foreign key on approval_request.manager_id.
        return ManagerResolution(input_id)

    if user.email:
        result = await session.execute(select(Manager).where(col(Manager.email) == user.email).limit(1))
        by_email = result.scalars().first()
        if by_email is not None:
            return ManagerResolution(by_email.manager_id)

    manager = Manager(
        manager_id=user.user_id,
        manager_name=user.first_name or user.username or user.email or user.user_id,
        email=user.email or None,
        department=user.department or None,
    )
    async with session.begin_nested():
        session.add(manager)
    logger.info("Created manager %s from user record", manager.manager_id)
    return ManagerResolution(manager.manager_id, created=True)


async def resolve_manager(session: AsyncSession, input_id: str | None) -> ManagerResolution:
    """Resolve a manager reference. Never raises; failures pass the input through."""
    if not input_id:
        return ManagerResolution(input_id)
    try:
        return await _resolve(session, input_id)
    except Exception as exc:
        logger.exception("Manager resolution failed for %s", input_id)
        return ManagerResolution(input_id, failure=ResolutionFailure(input_id, str(exc)))


async def resolve_manager_id(session: AsyncSession, input_id: str | None) -> str | None:
    """Shorthand for ``resolve_manager(...).manager_id``."""
    resolution = await resolve_manager(session, input_id)
    return resolution.manager_id


async def ensure_manager(session: AsyncSession, reference: ApprovingManager) -> Manager:
    """Return the manager for a creation payload, creating it if it does not exist yet."""
    manager_id = await resolve_manager_id(session, reference.manager_id) or reference.manager_id
    manager = await session.get(Manager, manager_id)
    if manager is not None:
        return manager

    manager = Manager(
        manager_id=manager_id,
        manager_name=reference.manager_name,
        email=reference.email,
        department=reference.department,
    )
    try:
        async with session.begin_nested():
            session.add(manager)
    except IntegrityError:
        # Created concurrently by another request.
        existing = await session.get(Manager, manager_id)
        if existing is None:
            raise
        return existing
    return manager


async def list_managers(session: AsyncSession, email: str | None = None) -> ManagerListResponse:
    """List managers with the number of requests routed to each."""
    query = (
        select(Manager, func.count(col(ApprovalRequest.id)))
        .outerjoin(ApprovalRequest, col(ApprovalRequest.manager_id) == col(Manager.manager_id))
        .group_by(col(Manager.manager_id))
        .order_by(col(Manager.manager_name))
    )
    if email is not None:
        query = query.where(col(Manager.email) == email)

    result = await session.execute(query)
    items = [
        ManagerSummary(**build_manager_response(manager).model_dump(), request_count=count)
        for manager, count in result.all()
    ]
    return ManagerListResponse(items=items, total=len(items))
