"""Seed script for development data.

Run with:  python -m request_desk.seed

Demo users are written straight to the database (their ids are fixed, which the
API does not allow). Sample requests are then submitted through the running API.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import date, timedelta

import httpx
from sqlalchemy import or_, select
from sqlmodel import SQLModel, col

from request_desk.db import dispose_engine, get_engine, get_session_factory
from request_desk.models.enums import UserRole
from request_desk.models.user import User

BASE_URL = "http://localhost:8000"

USERS = [
    ("MGR001", "john.smith", "John", "Smith", UserRole.MANAGER, "Finance"),
    ("MGR002", "sarah.johnson", "Sarah", "Johnson", UserRole.MANAGER, "Operations"),
    ("MGR003", "michael.chen", "Michael", "Chen", UserRole.MANAGER, "Engineering"),
    ("MGR004", "emma.williams", "Emma", "Williams", UserRole.MANAGER, "Regional Manager"),
    ("MGR005", "david.brown", "David", "Brown", UserRole.MANAGER, "IT"),
    ("USR001", "alice.cooper", "Alice", "Cooper", UserRole.USER, "Sales"),
    ("USR002", "bob.martin", "Bob", "Martin", UserRole.USER, "Marketing"),
]

USER_HEADERS = {"Content-Type": "application/json", "X-User-Id": "USR001", "X-Role": "USER"}


async def seed_users() -> None:
    print("\n--- Seeding users ---")
    async with get_engine().begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with get_session_factory()() as session:
        for user_id, username, first_name, last_name, role, department in USERS:
            email = f"{username}@company.com"
            result = await session.execute(
                select(User).where(
                    or_(col(User.user_id) == user_id, col(User.username) == username, col(User.email) == email)
                )
            )
            if result.scalars().first() is not None:
                print(f"  [SKIP] {username} (already exists)")
                continue
            session.add(
                User(
                    user_id=user_id,
                    username=username,
                    email=email,
                    password="manager123" if role is UserRole.MANAGER else "user123",
                    first_name=first_name,
                    last_name=last_name,
                    role=role.value,
                    department=department,
                )
            )
            print(f"  [OK] {role.value}: {first_name} {last_name}")
        await session.commit()


async def _safe_post(client: httpx.AsyncClient, url: str, json: dict, label: str) -> dict | None:
    resp = await client.post(url, json=json, headers=USER_HEADERS)
    if resp.status_code in (200, 201):
        print(f"  [OK] {label}")
        return resp.json()
    if resp.status_code == 409:
        print(f"  [SKIP] {label} (already exists)")
        return None
    print(f"  [ERROR] {label}: {resp.status_code} {resp.text[:200]}")
    return None


async def seed_requests(client: httpx.AsyncClient) -> None:
    print("\n--- Seeding requests ---")
    start = date.today() + timedelta(days=14)

    await _safe_post(
        client,
        f"{BASE_URL}/requests/travel",
        {
            "request_id": "TR-SEED-001",
            "submitter": {
                "user_id": "USR001",
                "submitted_by": "Alice Cooper",
                "submitted_by_email": "alice.cooper@company.com",
            },
            "travel_information": {
                "destination": "Berlin",
                "start_date": start.isoformat(),
                "end_date": (start + timedelta(days=3)).isoformat(),
                "reason": "Customer workshop",
                "duration": "4 days",
            },
            "approving_manager": {"manager_id": "MGR001", "manager_name": "John Smith"},
        },
        "Travel: Alice to Berlin",
    )
    await _safe_post(
        client,
        f"{BASE_URL}/requests/vacation",
        {
            "request_id": "VR-SEED-001",
            "user_id": "USR001",
            "manager_id": "MGR002",
            "substitute_id": "USR002",
            "start_date": (start + timedelta(days=30)).isoformat(),
            "end_date": (start + timedelta(days=41)).isoformat(),
            "reason": "Summer holiday",
        },
        "Vacation: Alice, two weeks",
    )
    await _safe_post(
        client,
        f"{BASE_URL}/requests/equipment",
        {
            "request_id": "EQ-SEED-001",
            "user_id": "USR002",
            "approving_manager": {"manager_id": "MGR005", "manager_name": "David Brown", "department": "IT"},
            "equipment_items": [
                {"type": "Hardware", "name": "Laptop", "cost": "1499.00", "reason": "Replacement"},
                {"type": "Hardware", "name": "Monitor", "cost": "249.50", "amount": 2},
            ],
        },
        "Equipment: Bob, laptop and monitors",
    )


async def main() -> None:
    print("=" * 60)
    print("  Request Desk: Development Seed Script")
    print("=" * 60)

    await seed_users()
    await dispose_engine()

    async with httpx.AsyncClient(timeout=30.0) as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            if resp.status_code != 200:
                print(f"API health check failed: {resp.status_code}")
                sys.exit(1)
            print("\n[OK] API is healthy")
        except httpx.ConnectError:
            print("ERROR: Cannot connect to API at", BASE_URL)
            print("Start it with: uvicorn request_desk.main:app")
            sys.exit(1)

        await seed_requests(client)

    print("\n" + "=" * 60)
    print("  Seeding complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
