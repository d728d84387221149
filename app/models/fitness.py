import uuid
from sqlalchemy import String, Integer, ForeignKey, Text, Float, DateTime, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship, synonym
from datetime import datetime, timezone
from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkoutPlan(Base):
    __tablename__ = "workout_plans"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    # Legacy assignment shape: the client id embedded on the plan itself
    client_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("clients.id"), nullable=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    goal: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True) # weight_loss | weight_gain | maintenance | general
    duration_weeks: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    exercises: Mapped[dict | list] = mapped_column(JSON, nullable=False, default=dict) # per-day structure
    difficulty: Mapped[str | None] = mapped_column(String, nullable=True)
    is_template: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    assigned_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cloned_from_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("workout_plans.id", ondelete="SET NULL"), nullable=True)
    times_cloned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    client = relationship("Client", foreign_keys=[client_id])


class DietPlan(Base):
    __tablename__ = "diet_plans"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("clients.id"), nullable=True, index=True)
    trainer_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    target_calories: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    protein: Mapped[float | None] = mapped_column(Float, nullable=True)
    carbs: Mapped[float | None] = mapped_column(Float, nullable=True)
    fats: Mapped[float | None] = mapped_column(Float, nullable=True)
    meals: Mapped[dict | list] = mapped_column(JSON, nullable=False, default=dict) # per-day structure
    water_intake_goal: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_template: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    assigned_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    cloned_from_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("diet_plans.id", ondelete="SET NULL"), nullable=True)
    times_cloned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    client = relationship("Client", foreign_keys=[client_id])


class WorkoutPlanAssignment(Base):
    __tablename__ = "workout_plan_assignments"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    workout_plan_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("workout_plans.id", ondelete="CASCADE"), nullable=False, index=True)
    # Unique: at most one current workout plan per client
    client_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, unique=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    plan_id = synonym("workout_plan_id")
    plan = relationship("WorkoutPlan")


class DietPlanAssignment(Base):
    __tablename__ = "diet_plan_assignments"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    diet_plan_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("diet_plans.id", ondelete="CASCADE"), nullable=False, index=True)
    client_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, unique=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    plan_id = synonym("diet_plan_id")
    plan = relationship("DietPlan")
