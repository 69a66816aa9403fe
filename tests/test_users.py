"""Tests for login, auto-registration and the user directory."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from httpx import AsyncClient

pytestmark = pytest.mark.usefixtures("directory")


async def test_login_returns_user_without_password(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/users/login", json={"email": "john.smith@company.com", "password": "manager123"}
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["user_id"] == "MGR001"
    assert data["role"] == "MANAGER"
    assert "password" not in data


@pytest.mark.parametrize(
    ("email", "password"),
    [("john.smith@company.com", "wrong"), ("nobody@company.com", "manager123")],
)
async def test_login_with_bad_credentials_is_401(async_client: AsyncClient, email: str, password: str) -> None:
    resp = await async_client.post("/users/login", json={"email": email, "password": password})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid email or password"


async def test_login_of_disabled_account_is_403(async_client: AsyncClient) -> None:
    resp = await async_client.post("/users/login", json={"email": "bob.martin@company.com", "password": "user123"})
    assert resp.status_code == 403


async def test_auto_register_generates_identifiers(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/users/auto-register", json={"email": "new.hire@company.com", "password": "secret"}
    )

    assert resp.status_code == 201
    data = resp.json()
    assert re.fullmatch(r"USR-\d+", data["user_id"])
    assert re.fullmatch(r"new\.hire_\d+", data["username"])
    assert data["first_name"] == "User"
    assert data["last_name"] == "User"
    assert data["department"] == "General"
    assert data["role"] == "MANAGER"
    assert data["is_active"] is True
    assert "password" not in data

    login = await async_client.post("/users/login", json={"email": "new.hire@company.com", "password": "secret"})
    assert login.status_code == 200


async def test_auto_register_existing_email_is_409(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        "/users/auto-register", json={"email": "alice.cooper@company.com", "password": "x"}
    )
    assert resp.status_code == 409


async def test_list_users_by_role(async_client: AsyncClient) -> None:
    everyone = (await async_client.get("/users")).json()
    assert [u["user_id"] for u in everyone["items"]] == ["MGR001", "MGR002", "USR001", "USR002"]

    managers = (await async_client.get("/users", params={"role": "MANAGER"})).json()
    assert managers["total"] == 2
    assert {u["user_id"] for u in managers["items"]} == {"MGR001", "MGR002"}


async def test_list_managers_endpoint(async_client: AsyncClient) -> None:
    resp = await async_client.get("/managers", params={"email": "grace@company.com"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 1
    assert data["items"][0]["manager_id"] == "M-100"
    assert data["items"][0]["request_count"] == 0
