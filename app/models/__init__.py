from app.models.audit import AuditLog
from app.models.client import Client, Package
from app.models.enums import ClientStatus, PlanKind, Role
from app.models.fitness import DietPlan, DietPlanAssignment, WorkoutPlan, WorkoutPlanAssignment
from app.models.user import User


__all__ = [
    "AuditLog",
    "Client",
    "ClientStatus",
    "DietPlan",
    "DietPlanAssignment",
    "Package",
    "PlanKind",
    "Role",
    "User",
    "WorkoutPlan",
    "WorkoutPlanAssignment",
]
