from typing import Annotated, List
from datetime import datetime, timezone
import uuid

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.config import settings
from app.core.exceptions import NotFound
from app.core.identifiers import parse_identifier
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.client import Package
from app.models.user import User
from app.services.audit_service import AuditService

router = APIRouter()


class PackageCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    price: float = Field(ge=0)
    features: List[str] = Field(default_factory=list)
    video_access: bool = False
    diet_plan_access: bool = False
    workout_plan_access: bool = False
    recorded_sessions_access: bool = False
    personalized_diet_access: bool = False
    weekly_check_in_access: bool = False
    live_group_training_access: bool = False
    one_on_one_call_access: bool = False
    habit_coaching_access: bool = False
    performance_tracking_access: bool = False
    priority_support_access: bool = False
    live_sessions_per_month: int = Field(default=0, ge=0)
    duration_options: List[int] = Field(default_factory=lambda: list(settings.ALLOWED_PACKAGE_DURATIONS))

    @field_validator("duration_options")
    @classmethod
    def validate_durations(cls, value: List[int]) -> List[int]:
        invalid = [weeks for weeks in value if weeks not in settings.ALLOWED_PACKAGE_DURATIONS]
        if invalid or not value:
            raise ValueError(f"duration_options must be a non-empty subset of {settings.ALLOWED_PACKAGE_DURATIONS}")
        return sorted(set(value))


class PackageResponse(PackageCreate):
    id: uuid.UUID
    archived_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


async def _get_package_or_404(db: AsyncSession, package_id: str) -> Package:
    package = await db.get(Package, parse_identifier(package_id, label="package id"))
    if package is None:
        raise NotFound("Package not found")
    return package


@router.post("", response_model=StandardResponse[PackageResponse])
async def create_package(
    data: PackageCreate,
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    package = Package(**data.model_dump())
    db.add(package)
    await db.flush()
    await AuditService.log_action(db, current_user.id, "CREATE_PACKAGE", target_id=str(package.id), details=package.name)
    await db.commit()
    await db.refresh(package)
    return StandardResponse(message="Package created", data=PackageResponse.model_validate(package))


@router.get("", response_model=StandardResponse[List[PackageResponse]])
async def list_packages(
    current_user: Annotated[User, Depends(dependencies.get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    include_archived: bool = Query(False),
):
    stmt = select(Package).order_by(Package.price.asc())
    if not include_archived:
        stmt = stmt.where(Package.archived_at.is_(None))
    packages = (await db.execute(stmt)).scalars().all()
    return StandardResponse(data=[PackageResponse.model_validate(p) for p in packages])


@router.get("/{package_id}", response_model=StandardResponse[PackageResponse])
async def get_package(
    package_id: str,
    current_user: Annotated[User, Depends(dependencies.get_current_active_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    package = await _get_package_or_404(db, package_id)
    return StandardResponse(data=PackageResponse.model_validate(package))


@router.post("/{package_id}/archive", response_model=StandardResponse[PackageResponse])
async def archive_package(
    package_id: str,
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Archived packages stay attached to their clients but stop counting towards revenue."""
    package = await _get_package_or_404(db, package_id)
    if package.archived_at is None:
        package.archived_at = datetime.now(timezone.utc)
        await AuditService.log_action(db, current_user.id, "ARCHIVE_PACKAGE", target_id=str(package.id))
        await db.commit()
        await db.refresh(package)
    return StandardResponse(message="Package archived", data=PackageResponse.model_validate(package))
