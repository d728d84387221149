import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Integer, Float, ForeignKey, Text, DateTime, Boolean, JSON, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
from app.models.enums import ClientStatus, FitnessLevel, RenewalType

class Package(Base):
    __tablename__ = "packages"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False) # flat rate for the whole package_duration
    features: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    video_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    diet_plan_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    workout_plan_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recorded_sessions_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    personalized_diet_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    weekly_check_in_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    live_group_training_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    one_on_one_call_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    habit_coaching_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    performance_tracking_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    priority_support_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    live_sessions_per_month: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    duration_options: Mapped[list] = mapped_column(JSON, nullable=False, default=lambda: [4, 8, 12]) # weeks

    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)

    # Profile
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gender: Mapped[str | None] = mapped_column(String, nullable=True)
    height: Mapped[float | None] = mapped_column(Float, nullable=True)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    goal: Mapped[str | None] = mapped_column(String, nullable=True)
    fitness_level: Mapped[FitnessLevel | None] = mapped_column(SAEnum(FitnessLevel, native_enum=False), nullable=True)

    user_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True, unique=True) # login account
    trainer_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    package_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("packages.id"), nullable=True)
    package_duration: Mapped[int] = mapped_column(Integer, default=4, nullable=False) # weeks
    status: Mapped[ClientStatus] = mapped_column(SAEnum(ClientStatus, native_enum=False), default=ClientStatus.ACTIVE, nullable=False)

    # Subscription sub-object, flattened
    subscription_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    subscription_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    subscription_renewal_type: Mapped[RenewalType | None] = mapped_column(SAEnum(RenewalType, native_enum=False), nullable=True)
    subscription_auto_renewal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    trainer = relationship("User", foreign_keys=[trainer_id])
    package = relationship("Package")
