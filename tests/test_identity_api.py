import httpx
import pytest

from orderflow.core.database import get_db
from orderflow.core.security import create_access_token
from orderflow.main import app

PASSWORD = "secret123"


@pytest.fixture
async def http(db_session):
    """只替換 DB，登入者由真正的 Bearer Token 解析"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def bearer(user) -> dict:
    token = create_access_token({"user_id": user.user_id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


async def register_and_login(http, email: str, role: str) -> dict:
    response = await http.post("/auth/register", json={"email": email, "password": PASSWORD, "role": role})
    assert response.status_code == 201
    response = await http.post("/auth/token", data={"username": email, "password": PASSWORD})
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_registered_provider_starts_with_empty_stats(http):
    token = await register_and_login(http, "maker@shop.io", "provider")
    assert token["role"] == "provider"
    assert token["token_type"] == "bearer"

    response = await http.get("/users/me", headers={"Authorization": f"Bearer {token['access_token']}"})
    me = response.json()
    assert me["user_id"] == token["user_id"]
    assert me["provider_stats"] == {
        "user_id": token["user_id"], "completed_projects": 0, "rating": 0.0, "total_reviews": 0
    }


@pytest.mark.asyncio
async def test_client_has_no_provider_stats(http):
    token = await register_and_login(http, "buyer@shop.io", "client")
    response = await http.get("/users/me", headers={"Authorization": f"Bearer {token['access_token']}"})
    assert response.json()["role"] == "client"
    assert response.json()["provider_stats"] is None


@pytest.mark.asyncio
async def test_admin_cannot_self_register(http):
    response = await http.post(
        "/auth/register", json={"email": "boss@shop.io", "password": PASSWORD, "role": "admin"}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_email_is_conflict(http):
    await register_and_login(http, "maker@shop.io", "provider")
    response = await http.post(
        "/auth/register", json={"email": "maker@shop.io", "password": PASSWORD, "role": "client"}
    )
    assert response.status_code == 409
    assert response.json()["error"] == "already_exists"


@pytest.mark.asyncio
async def test_wrong_password_is_unauthorized(http):
    await register_and_login(http, "maker@shop.io", "provider")
    response = await http.post("/auth/token", data={"username": "maker@shop.io", "password": "wrong1234"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_provider_stats_lookup(http, users):
    headers = bearer(users["client"])

    response = await http.get(f"/users/{users['provider'].user_id}/provider-stats", headers=headers)
    assert response.status_code == 200
    assert response.json()["completed_projects"] == 0

    response = await http.get(f"/users/{users['client'].user_id}/provider-stats", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(http):
    response = await http.get("/users/me")
    assert response.status_code == 401
