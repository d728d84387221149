import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-suite-only")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy import Delete, Select, event, insert
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.security import create_access_token, get_password_hash
from app.config import settings
from app.database import Base, get_db
from app.main import app
from app.models import Client, ClientStatus, DietPlan, Package, Role, User, WorkoutPlan
from app.services.plan_assignment_service import models_for


@pytest.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own; emit it explicitly so SAVEPOINTs nest correctly
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    async_session = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
    async with async_session() as session:
        yield session


@pytest.fixture(scope="function")
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def token_headers_for(user: User) -> dict[str, str]:
    token = create_access_token(subject=user.email, expires_delta=timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return token_headers_for


@pytest.fixture
def make_user(db_session):
    async def _make_user(email: str, role: Role = Role.CLIENT, password: str = "password123") -> User:
        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            full_name=email.split("@")[0].title(),
            role=role,
            is_active=True,
        )
        db_session.add(user)
        await db_session.commit()
        return user
    return _make_user


@pytest.fixture
async def admin_token_headers(client, make_user):
    # Login through the API like a real client
    await make_user("admin@test.com", Role.ADMIN, password="password")
    response = await client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": "admin@test.com", "password": "password"}
    )
    token = response.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def trainer_token_headers(make_user):
    trainer = await make_user("trainer@test.com", Role.TRAINER)
    return token_headers_for(trainer)


@pytest.fixture
def make_package(db_session):
    async def _make_package(
        name: str = "Premium",
        price: float = 100.0,
        *,
        diet: bool = True,
        workout: bool = True,
        archived: bool = False,
    ) -> Package:
        package = Package(
            name=name,
            price=price,
            features=[],
            diet_plan_access=diet,
            workout_plan_access=workout,
            duration_options=[4, 8, 12],
            archived_at=datetime.now(timezone.utc) if archived else None,
        )
        db_session.add(package)
        await db_session.commit()
        return package
    return _make_package


@pytest.fixture
def make_client(db_session):
    async def _make_client(
        email: str,
        package: Package | None = None,
        *,
        duration: int = 4,
        start: datetime | None = None,
        end: datetime | None = None,
        status: ClientStatus = ClientStatus.ACTIVE,
        user: User | None = None,
    ) -> Client:
        if package is not None and start is None:
            start = datetime.now(timezone.utc)
        if start is not None and end is None:
            end = start + timedelta(weeks=duration)
        client = Client(
            name=email.split("@")[0].title(),
            email=email,
            package_id=package.id if package else None,
            package_duration=duration,
            status=status,
            subscription_start_date=start,
            subscription_end_date=end,
            user_id=user.id if user else None,
        )
        db_session.add(client)
        await db_session.commit()
        return client
    return _make_client


@pytest.fixture
def make_plan(db_session):
    async def _make_plan(
        kind: str,
        name: str,
        *,
        client: Client | None = None,
        is_template: bool = False,
        created_at: datetime | None = None,
    ):
        model = DietPlan if kind == "diet" else WorkoutPlan
        values = {"name": name, "client_id": client.id if client else None, "is_template": is_template}
        if kind == "diet":
            values["meals"] = {"monday": [{"name": "Oats", "calories": 350}]}
            values["target_calories"] = 2000
        else:
            values["exercises"] = {"monday": [{"name": "Squat", "sets": 3, "reps": 10}]}
        if created_at is not None:
            values["created_at"] = created_at
        plan = model(**values)
        db_session.add(plan)
        await db_session.commit()
        return plan
    return _make_plan


@pytest.fixture
def competing_assignment(db_session, monkeypatch):
    """
    Simulate a concurrent writer: the next time the session looks up an
    assignment row of this kind, another assignment for the same client is
    inserted first, so the following insert hits the unique client index.
    """
    def _arm(kind: str, client_id: uuid.UUID, competing_plan_id: uuid.UUID) -> None:
        table = models_for(kind).assignment.__table__
        execute = db_session.execute
        fired = []

        async def execute_with_competitor(statement, *args, **kwargs):
            if not fired and isinstance(statement, Select) and table in statement.get_final_froms():
                fired.append(statement)
                await execute(
                    insert(table).values(
                        id=uuid.uuid4(),
                        client_id=client_id,
                        assigned_at=datetime.now(timezone.utc),
                        **{f"{kind}_plan_id": competing_plan_id},
                    )
                )
            return await execute(statement, *args, **kwargs)

        monkeypatch.setattr(db_session, "execute", execute_with_competitor)
    return _arm


@pytest.fixture
def failing_legacy_cleanup(db_session, monkeypatch):
    """Make every DELETE against a plan table of this kind fail at the database."""
    def _arm(kind: str) -> None:
        table = models_for(kind).plan.__table__
        execute = db_session.execute

        async def execute_with_failure(statement, *args, **kwargs):
            if isinstance(statement, Delete) and statement.table.name == table.name:
                raise OperationalError(f"DELETE FROM {table.name}", {}, Exception("database is locked"))
            return await execute(statement, *args, **kwargs)

        monkeypatch.setattr(db_session, "execute", execute_with_failure)
    return _arm
