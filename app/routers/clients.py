from typing import Annotated, List
from datetime import datetime, timedelta, timezone
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.config import settings
from app.core.exceptions import NotFound
from app.core.identifiers import parse_identifier
from app.core.responses import ASSIGNMENT_ERROR_RESPONSES, StandardResponse
from app.database import get_db
from app.models.client import Client, Package
from app.models.enums import ClientStatus, FitnessLevel, PlanKind, RenewalType, Role
from app.models.user import User
from app.routers.plans import PlanResponse, serialize_plan
from app.services.audit_service import AuditService
from app.services.plan_assignment_service import PlanAssignmentService
from app.services.timezone_service import to_utc_datetime

router = APIRouter()


class ClientCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    age: int | None = Field(default=None, ge=0)
    gender: str | None = None
    height: float | None = Field(default=None, gt=0)
    weight: float | None = Field(default=None, gt=0)
    goal: str | None = None
    fitness_level: FitnessLevel | None = None
    user_id: uuid.UUID | None = None
    trainer_id: uuid.UUID | None = None
    package_id: uuid.UUID | None = None
    package_duration: int = Field(default_factory=lambda: settings.DEFAULT_PACKAGE_DURATION_WEEKS)
    status: ClientStatus = ClientStatus.ACTIVE
    subscription_start_date: datetime | None = None
    subscription_renewal_type: RenewalType | None = None
    subscription_auto_renewal: bool = False


class ClientResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    phone: str | None = None
    age: int | None = None
    gender: str | None = None
    height: float | None = None
    weight: float | None = None
    goal: str | None = None
    fitness_level: FitnessLevel | None = None
    user_id: uuid.UUID | None = None
    trainer_id: uuid.UUID | None = None
    package_id: uuid.UUID | None = None
    package_duration: int
    status: ClientStatus
    subscription_start_date: datetime | None = None
    subscription_end_date: datetime | None = None
    subscription_renewal_type: RenewalType | None = None
    subscription_auto_renewal: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClientStatusUpdate(BaseModel):
    status: ClientStatus


@router.post("", response_model=StandardResponse[ClientResponse])
async def create_client(
    data: ClientCreate,
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    if data.package_duration not in settings.ALLOWED_PACKAGE_DURATIONS:
        raise HTTPException(
            status_code=400,
            detail=f"package_duration must be one of {settings.ALLOWED_PACKAGE_DURATIONS} weeks",
        )

    subscription_start = subscription_end = None
    if data.package_id is not None:
        package = await db.get(Package, data.package_id)
        if package is None or package.archived_at is not None:
            raise NotFound("Package not found")
        subscription_start = to_utc_datetime(data.subscription_start_date or datetime.now(timezone.utc))
        subscription_end = subscription_start + timedelta(weeks=data.package_duration)

    payload = data.model_dump(exclude={"subscription_start_date"})
    if current_user.role == Role.TRAINER and payload["trainer_id"] is None:
        payload["trainer_id"] = current_user.id

    client = Client(
        **payload,
        subscription_start_date=subscription_start,
        subscription_end_date=subscription_end,
    )
    db.add(client)
    await db.flush()
    await AuditService.log_action(db, current_user.id, "CREATE_CLIENT", target_id=str(client.id), details=client.email)
    await db.commit()
    await db.refresh(client)
    return StandardResponse(message="Client created", data=ClientResponse.model_validate(client))


@router.get("", response_model=StandardResponse[List[ClientResponse]])
async def list_clients(
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
    status: ClientStatus | None = Query(None),
):
    stmt = select(Client).order_by(Client.created_at.desc())
    if current_user.role == Role.TRAINER:
        stmt = stmt.where(or_(Client.trainer_id == current_user.id, Client.trainer_id.is_(None)))
    if status is not None:
        stmt = stmt.where(Client.status == status)
    clients = (await db.execute(stmt)).scalars().all()
    return StandardResponse(data=[ClientResponse.model_validate(c) for c in clients])


@router.get("/{client_id}", response_model=StandardResponse[ClientResponse])
async def get_client(
    client_id: str,
    current_user: Annotated[User, Depends(dependencies.get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    client = await PlanAssignmentService.get_client(db, client_id)
    await dependencies.ensure_can_view_client(current_user, client.id, db)
    return StandardResponse(data=ClientResponse.model_validate(client))


@router.patch("/{client_id}/status", response_model=StandardResponse[ClientResponse])
async def update_client_status(
    client_id: str,
    data: ClientStatusUpdate,
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    client = await PlanAssignmentService.get_client(db, client_id)
    await dependencies.ensure_can_manage_client(current_user, client.id, db)
    previous = client.status
    client.status = data.status
    await AuditService.log_action(
        db,
        current_user.id,
        "UPDATE_CLIENT_STATUS",
        target_id=str(client.id),
        details=f"{ClientStatus(previous).value} -> {data.status.value}",
    )
    await db.commit()
    await db.refresh(client)
    return StandardResponse(message="Client status updated", data=ClientResponse.model_validate(client))


@router.get(
    "/{client_id}/plans/{kind}",
    response_model=StandardResponse[List[PlanResponse]],
    responses=ASSIGNMENT_ERROR_RESPONSES,
)
async def get_client_plans(
    client_id: str,
    kind: PlanKind,
    current_user: Annotated[User, Depends(dependencies.get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Plans currently visible to the client, in either storage format. Empty list when none."""
    client_uuid = parse_identifier(client_id, label="client id")
    await dependencies.ensure_can_view_client(current_user, client_uuid, db)
    plans = await PlanAssignmentService.get_client_plans(db, kind, client_uuid)
    return StandardResponse(data=[serialize_plan(kind, plan) for plan in plans])


@router.delete("/{client_id}/plans/{kind}", response_model=StandardResponse, responses=ASSIGNMENT_ERROR_RESPONSES)
async def clear_client_plans(
    client_id: str,
    kind: PlanKind,
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    client_uuid = parse_identifier(client_id, label="client id")
    await dependencies.ensure_can_manage_client(current_user, client_uuid, db)
    removed = await PlanAssignmentService.clear_client_assignments(db, kind, client_uuid, actor_id=current_user.id)
    return StandardResponse(message="Assignments cleared", data={"removed": removed})


@router.post("/{client_id}/assignments/cleanup", response_model=StandardResponse, responses=ASSIGNMENT_ERROR_RESPONSES)
async def cleanup_client_assignments(
    client_id: str,
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    client_uuid = parse_identifier(client_id, label="client id")
    await dependencies.ensure_can_manage_client(current_user, client_uuid, db)
    summary = await PlanAssignmentService.cleanup_client_assignments(db, client_uuid, actor_id=current_user.id)
    return StandardResponse(message="Cleanup completed", data=summary)
