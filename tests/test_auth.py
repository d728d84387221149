import pytest
from datetime import timedelta
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

import app.main as main_module
from app.auth import security
from app.config import settings
from app.models.enums import Role
from app.models.user import User


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, db_session: AsyncSession):
    # Create a user
    email = "test@example.com"
    password = "password123"
    hashed_password = security.get_password_hash(password)
    user = User(email=email, hashed_password=hashed_password, role=Role.TRAINER)
    db_session.add(user)
    await db_session.commit()

    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": email, "password": password}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Login Successful"
    assert "access_token" in data["data"]
    assert data["data"]["token_type"] == "bearer"

    token = data["data"]["access_token"]
    me = await client.get(f"{settings.API_V1_STR}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["data"]["role"] == "TRAINER"
    assert me.json()["data"]["client_id"] is None


@pytest.mark.asyncio
async def test_login_invalid_credentials(client: AsyncClient, db_session: AsyncSession):
    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": "wrong@example.com", "password": "wrongpassword"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_login_rejects_malformed_email(client: AsyncClient):
    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": "not-an-email", "password": "whatever"}
    )
    assert response.status_code == 422
    assert response.json()["message"] == "Validation Error"


@pytest.mark.asyncio
async def test_protected_routes_need_a_valid_token(client: AsyncClient, make_user):
    response = await client.get(f"{settings.API_V1_STR}/auth/me")
    assert response.status_code == 401

    response = await client.get(
        f"{settings.API_V1_STR}/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401

    user = await make_user("expired@example.com", Role.ADMIN)
    expired = security.create_access_token(subject=user.email, expires_delta=timedelta(minutes=-1))
    response = await client.get(
        f"{settings.API_V1_STR}/auth/me", headers={"Authorization": f"Bearer {expired}"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_is_rejected(client: AsyncClient, db_session: AsyncSession, make_user, auth_headers):
    user = await make_user("inactive@example.com", Role.ADMIN)
    user.is_active = False
    await db_session.commit()

    response = await client.get(f"{settings.API_V1_STR}/auth/me", headers=auth_headers(user))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"] == "abc-123"


@pytest.mark.asyncio
async def test_healthz_reports_database_outage(client: AsyncClient, monkeypatch):
    response = await client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}

    class BrokenSession:
        async def __aenter__(self):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))

        async def __aexit__(self, *exc_info):
            return False

    monkeypatch.setattr(main_module, "AsyncSessionLocal", lambda: BrokenSession())
    response = await client.get("/healthz")
    assert response.status_code == 503


def test_production_settings_are_validated(monkeypatch):
    monkeypatch.setattr(settings, "APP_ENV", "production")
    monkeypatch.setattr(settings, "SECRET_KEY", "short")
    monkeypatch.setattr(settings, "BACKEND_CORS_ORIGINS", [])

    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        main_module._validate_security_settings()
