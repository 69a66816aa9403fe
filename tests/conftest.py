from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from request_desk.db import configure_sqlite, get_session
from request_desk.main import app
from request_desk.models import SQLModel
from request_desk.models.enums import UserRole
from request_desk.models.manager import Manager
from request_desk.models.user import User
from request_desk.services.events import InMemoryEventPublisher, LoggingEventPublisher, set_event_publisher
from request_desk.services.storage import AttachmentStore, set_attachment_store

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

ALLOWED_TYPES = ["application/pdf", "image/jpeg", "image/jpg", "image/png"]


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """A fresh SQLite database file per test with all tables created."""
    _engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'request_desk.db'}")
    configure_sqlite(_engine)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session shared by the test and the app under test."""
    session = AsyncSession(engine, expire_on_commit=False)
    yield session
    await session.close()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[AttachmentStore]:
    """Attachment store rooted in the test's temp directory, with a 1 KiB ceiling."""
    _store = AttachmentStore(tmp_path / "uploads", max_bytes=1024, allowed_types=ALLOWED_TYPES)
    set_attachment_store(_store)
    yield _store
    set_attachment_store(None)


@pytest.fixture
def events() -> Iterator[InMemoryEventPublisher]:
    publisher = InMemoryEventPublisher()
    set_event_publisher(publisher)
    yield publisher
    set_event_publisher(LoggingEventPublisher())


@pytest.fixture
async def async_client(
    db_session: AsyncSession,
    store: AttachmentStore,
    events: InMemoryEventPublisher,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    await store.initialize()
    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def directory(db_session: AsyncSession) -> None:
    """Demo users and one pre-registered manager."""
    db_session.add_all(
        [
            User(
                user_id="MGR001",
                username="john.smith",
                email="john.smith@company.com",
                first_name="John",
                last_name="Smith",
                role=UserRole.MANAGER.value,
                password="manager123",
                department="Finance",
            ),
            User(
                user_id="MGR002",
                username="sarah.johnson",
                email="sarah.johnson@company.com",
                first_name="Sarah",
                last_name="Johnson",
                role=UserRole.MANAGER.value,
                password="manager123",
                department="Operations",
            ),
            User(
                user_id="USR001",
                username="alice.cooper",
                email="alice.cooper@company.com",
                first_name="Alice",
                last_name="Cooper",
                role=UserRole.USER.value,
                password="user123",
                department="Sales",
            ),
            User(
                user_id="USR002",
                username="bob.martin",
                email="bob.martin@company.com",
                first_name="Bob",
                last_name="Martin",
                role=UserRole.USER.value,
                password="user123",
                department="Marketing",
                is_active=False,
            ),
            Manager(
                manager_id="M-100",
                manager_name="Grace Hopper",
                email="grace@company.com",
                department="Engineering",
            ),
        ]
    )
    await db_session.commit()
