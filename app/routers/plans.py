from typing import Annotated, Any, List, Literal, Union
from datetime import datetime
import uuid

from fastapi import APIRouter, Body, Depends
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.config import settings
from app.core.exceptions import InvalidIdentifier, NotFound, PackageAccessDenied
from app.core.identifiers import parse_identifier
from app.core.responses import ASSIGNMENT_ERROR_RESPONSES, StandardResponse
from app.database import get_db
from app.models.enums import PlanKind
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.plan_assignment_service import PlanAssignmentService, models_for

router = APIRouter()


class WorkoutPlanCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    goal: str | None = None
    category: str | None = None
    duration_weeks: int = Field(default=4, ge=1)
    exercises: dict | list = Field(default_factory=dict)
    difficulty: str | None = None
    is_template: bool = True
    client_id: uuid.UUID | None = None # legacy: plan owned by one client


class DietPlanCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    category: str | None = None
    target_calories: int = Field(default=0, ge=0)
    protein: float | None = Field(default=None, ge=0)
    carbs: float | None = Field(default=None, ge=0)
    fats: float | None = Field(default=None, ge=0)
    meals: dict | list = Field(default_factory=dict)
    water_intake_goal: float | None = Field(default=None, ge=0)
    is_template: bool = True
    client_id: uuid.UUID | None = None


class PlanBookkeeping(BaseModel):
    id: uuid.UUID
    created_by: str | None = None
    assigned_count: int = 0
    cloned_from_id: uuid.UUID | None = None
    times_cloned: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WorkoutPlanResponse(WorkoutPlanCreate, PlanBookkeeping):
    kind: Literal["workout"] = "workout"

    model_config = ConfigDict(from_attributes=True)


class DietPlanResponse(DietPlanCreate, PlanBookkeeping):
    kind: Literal["diet"] = "diet"
    trainer_id: uuid.UUID | None = None

    model_config = ConfigDict(from_attributes=True)


class AssignPlanRequest(BaseModel):
    # kept as strings so malformed ids surface as 400 rather than 422
    plan_id: str
    client_id: str


class BulkAssignRequest(BaseModel):
    plan_id: str
    client_ids: List[str] = Field(default_factory=list)


class ClonePlanRequest(BaseModel):
    client_id: str | None = None
    name: str | None = None


_CREATE_SCHEMAS: dict[PlanKind, type[BaseModel]] = {
    PlanKind.DIET: DietPlanCreate,
    PlanKind.WORKOUT: WorkoutPlanCreate,
}
_RESPONSE_SCHEMAS: dict[PlanKind, type[BaseModel]] = {
    PlanKind.DIET: DietPlanResponse,
    PlanKind.WORKOUT: WorkoutPlanResponse,
}

PlanResponse = Annotated[Union[DietPlanResponse, WorkoutPlanResponse], Field(discriminator="kind")]


def serialize_plan(kind: PlanKind | str, plan) -> PlanResponse:
    return _RESPONSE_SCHEMAS[PlanKind(kind)].model_validate(plan)


async def _check_package_access(db: AsyncSession, kind: PlanKind, client_id: str | uuid.UUID) -> None:
    if settings.ENFORCE_PACKAGE_PLAN_ACCESS:
        await PlanAssignmentService.ensure_package_access(db, kind, client_id)


@router.post("/{kind}", response_model=StandardResponse[PlanResponse])
async def create_plan(
    kind: PlanKind,
    payload: Annotated[dict[str, Any], Body()],
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    try:
        data = _CREATE_SCHEMAS[kind].model_validate(payload)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    values = data.model_dump()
    if values["client_id"] is not None:
        await PlanAssignmentService.get_client(db, values["client_id"])
        values["is_template"] = False
    if kind == PlanKind.DIET:
        values["trainer_id"] = current_user.id

    models = models_for(kind)
    plan = models.plan(**values, created_by=current_user.email)
    db.add(plan)
    await db.flush()
    await AuditService.log_action(
        db, current_user.id, f"CREATE_{models.kind.name}_PLAN", target_id=str(plan.id), details=plan.name
    )
    await db.commit()
    await db.refresh(plan)
    return StandardResponse(message=f"{models.label} created", data=serialize_plan(kind, plan))


@router.get("/{kind}/templates", response_model=StandardResponse[List[PlanResponse]])
async def list_templates(
    kind: PlanKind,
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    plan_model = models_for(kind).plan
    stmt = select(plan_model).where(plan_model.is_template.is_(True)).order_by(plan_model.created_at.desc())
    plans = (await db.execute(stmt)).scalars().all()
    return StandardResponse(data=[serialize_plan(kind, p) for p in plans])


@router.post(
    "/{kind}/assign",
    response_model=StandardResponse[PlanResponse],
    responses=ASSIGNMENT_ERROR_RESPONSES,
)
async def assign_plan(
    kind: PlanKind,
    data: AssignPlanRequest,
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Make the plan the client's only plan of this kind.

    Any other assignment of the same kind, and any legacy non-template plan
    owned by the client, is removed before the new assignment is written.
    """
    plan_uuid = parse_identifier(data.plan_id, label=f"{kind.value} plan id")
    client_uuid = parse_identifier(data.client_id, label="client id")
    await dependencies.ensure_can_manage_client(current_user, client_uuid, db)
    await PlanAssignmentService.get_plan(db, kind, plan_uuid)
    await _check_package_access(db, kind, client_uuid)
    plan = await PlanAssignmentService.assign_plan(
        db, kind, plan_uuid, client_uuid, actor_id=current_user.id
    )
    return StandardResponse(message=f"{models_for(kind).label} assigned", data=serialize_plan(kind, plan))


@router.post("/{kind}/bulk-assign", response_model=StandardResponse, responses=ASSIGNMENT_ERROR_RESPONSES)
async def bulk_assign_plan(
    kind: PlanKind,
    data: BulkAssignRequest,
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await PlanAssignmentService.get_plan(db, kind, data.plan_id)

    eligible: list[str] = []
    denied: list[str] = []
    for client_id in data.client_ids:
        try:
            await _check_package_access(db, kind, client_id)
        except PackageAccessDenied as exc:
            denied.append(f"{client_id}: {exc}")
            continue
        except (InvalidIdentifier, NotFound):
            pass # reported by the service as skipped
        eligible.append(client_id)

    result = await PlanAssignmentService.assign_plan_to_clients(
        db, kind, data.plan_id, eligible, actor_id=current_user.id
    )
    return StandardResponse(
        message=f"Assigned to {len(result['assigned'])} client(s)",
        data={
            "plan": serialize_plan(kind, result["plan"]),
            "assigned": result["assigned"],
            "skipped": [*result["skipped"], *denied],
        },
    )


@router.get("/{kind}/{plan_id}", response_model=StandardResponse[PlanResponse], responses=ASSIGNMENT_ERROR_RESPONSES)
async def get_plan(
    kind: PlanKind,
    plan_id: str,
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    plan = await PlanAssignmentService.get_plan(db, kind, plan_id)
    return StandardResponse(data=serialize_plan(kind, plan))


@router.delete("/{kind}/{plan_id}", response_model=StandardResponse, responses=ASSIGNMENT_ERROR_RESPONSES)
async def delete_plan(
    kind: PlanKind,
    plan_id: str,
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await PlanAssignmentService.delete_plan(db, kind, plan_id, actor_id=current_user.id)
    return StandardResponse(message=f"{models_for(kind).label} deleted")


@router.post(
    "/{kind}/{plan_id}/clone",
    response_model=StandardResponse[PlanResponse],
    responses=ASSIGNMENT_ERROR_RESPONSES,
)
async def clone_plan(
    kind: PlanKind,
    plan_id: str,
    current_user: Annotated[User, Depends(dependencies.get_current_staff)],
    db: Annotated[AsyncSession, Depends(get_db)],
    data: ClonePlanRequest | None = None,
):
    data = data or ClonePlanRequest()
    await PlanAssignmentService.get_plan(db, kind, plan_id)
    if data.client_id is not None:
        client_uuid = parse_identifier(data.client_id, label="client id")
        await dependencies.ensure_can_manage_client(current_user, client_uuid, db)
        await _check_package_access(db, kind, client_uuid)
    clone = await PlanAssignmentService.clone_plan(
        db, kind, plan_id, client_id=data.client_id, name=data.name, actor_id=current_user.id
    )
    return StandardResponse(message="Plan cloned successfully", data=serialize_plan(kind, clone))
