from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Union

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictRace, InvalidIdentifier, NotFound, PackageAccessDenied
from app.core.identifiers import parse_identifier
from app.models.client import Client, Package
from app.models.enums import PlanKind
from app.models.fitness import DietPlan, DietPlanAssignment, WorkoutPlan, WorkoutPlanAssignment
from app.services.audit_service import AuditService
from app.services.timezone_service import as_utc

logger = logging.getLogger(__name__)

Plan = Union[DietPlan, WorkoutPlan]
Assignment = Union[DietPlanAssignment, WorkoutPlanAssignment]

# Columns that describe a plan's identity or bookkeeping rather than its content
_NON_CONTENT_COLUMNS = {
    "id",
    "client_id",
    "is_template",
    "assigned_count",
    "cloned_from_id",
    "times_cloned",
    "created_at",
    "updated_at",
}


@dataclass(frozen=True)
class PlanModels:
    kind: PlanKind
    plan: type[DietPlan] | type[WorkoutPlan]
    assignment: type[DietPlanAssignment] | type[WorkoutPlanAssignment]
    label: str
    package_flag: str


PLAN_MODELS: dict[PlanKind, PlanModels] = {
    PlanKind.DIET: PlanModels(PlanKind.DIET, DietPlan, DietPlanAssignment, "Diet plan", "diet_plan_access"),
    PlanKind.WORKOUT: PlanModels(PlanKind.WORKOUT, WorkoutPlan, WorkoutPlanAssignment, "Workout plan", "workout_plan_access"),
}


def models_for(kind: PlanKind | str) -> PlanModels:
    return PLAN_MODELS[PlanKind(kind)]


@dataclass
class ReconcileResult:
    removed_assignments: int = 0
    removed_legacy_plans: int = 0
    created: bool = False


class PlanAssignmentService:
    @staticmethod
    async def get_plan(db: AsyncSession, kind: PlanKind | str, plan_id: str | uuid.UUID) -> Plan:
        models = models_for(kind)
        plan_uuid = parse_identifier(plan_id, label=f"{models.kind.value} plan id")
        plan = await db.get(models.plan, plan_uuid)
        if plan is None:
            raise NotFound(f"{models.label} not found")
        return plan

    @staticmethod
    async def get_client(db: AsyncSession, client_id: str | uuid.UUID) -> Client:
        client_uuid = parse_identifier(client_id, label="client id")
        client = await db.get(Client, client_uuid)
        if client is None:
            raise NotFound("Client not found")
        return client

    @staticmethod
    async def ensure_package_access(db: AsyncSession, kind: PlanKind | str, client_id: str | uuid.UUID) -> None:
        """Raise PackageAccessDenied unless the client's package grants this plan kind."""
        models = models_for(kind)
        client = await PlanAssignmentService.get_client(db, client_id)
        package = await db.get(Package, client.package_id) if client.package_id else None
        if package is None or not getattr(package, models.package_flag):
            raise PackageAccessDenied(
                f"Client's package does not include {models.kind.value} plan access. Upgrade required."
            )

    @staticmethod
    async def _reconcile(
        db: AsyncSession,
        models: PlanModels,
        plan_id: uuid.UUID,
        client_id: uuid.UUID,
    ) -> ReconcileResult:
        """Make plan_id the client's only plan of this kind. Caller commits."""
        outcome = ReconcileResult()
        assignment = models.assignment

        removed = await db.execute(
            delete(assignment).where(
                assignment.client_id == client_id,
                assignment.plan_id != plan_id,
            )
        )
        outcome.removed_assignments = removed.rowcount or 0

        # Legacy rows: the client id embedded on the plan. Best effort; a failure
        # here must not block the new assignment.
        try:
            async with db.begin_nested():
                legacy = await db.execute(
                    delete(models.plan).where(
                        models.plan.client_id == client_id,
                        models.plan.id != plan_id,
                        models.plan.is_template.is_(False),
                    )
                )
            outcome.removed_legacy_plans = legacy.rowcount or 0
        except SQLAlchemyError:
            logger.exception(
                "Legacy %s plan cleanup failed for client %s; continuing with assignment",
                models.kind.value,
                client_id,
            )

        existing = await db.execute(
            select(assignment.id).where(
                assignment.plan_id == plan_id,
                assignment.client_id == client_id,
            )
        )
        if existing.scalar_one_or_none() is None:
            db.add(assignment(plan_id=plan_id, client_id=client_id, assigned_at=datetime.now(timezone.utc)))
            await db.flush()
            outcome.created = True

        logger.info(
            "Reconciled %s plan %s for client %s: removed_assignments=%s removed_legacy_plans=%s created=%s",
            models.kind.value,
            plan_id,
            client_id,
            outcome.removed_assignments,
            outcome.removed_legacy_plans,
            outcome.created,
        )
        return outcome

    @staticmethod
    async def _commit_or_conflict(db: AsyncSession, client_ref: object) -> None:
        try:
            await db.commit()
        except IntegrityError as exc:
            await db.rollback()
            logger.warning("Concurrent plan assignment detected for client %s: %s", client_ref, exc.orig)
            raise ConflictRace() from exc

    @staticmethod
    async def assign_plan(
        db: AsyncSession,
        kind: PlanKind | str,
        plan_id: str | uuid.UUID,
        client_id: str | uuid.UUID,
        *,
        actor_id: uuid.UUID | None = None,
    ) -> Plan:
        """
        Assign a plan to a client, superseding every other plan of the same kind.

        Order matters: competing assignment rows go first, then legacy plans
        that embed the client id, and only then is the new assignment row
        inserted (skipped when the exact pair already exists). All steps share
        one transaction; the unique index on the assignment's client id turns
        a racing insert into ConflictRace.
        """
        models = models_for(kind)
        plan_uuid = parse_identifier(plan_id, label=f"{models.kind.value} plan id")
        client_uuid = parse_identifier(client_id, label="client id")
        plan = await PlanAssignmentService.get_plan(db, models.kind, plan_uuid)
        await PlanAssignmentService.get_client(db, client_uuid)

        try:
            outcome = await PlanAssignmentService._reconcile(db, models, plan_uuid, client_uuid)
        except IntegrityError as exc:
            await db.rollback()
            logger.warning("Concurrent plan assignment detected for client %s: %s", client_uuid, exc.orig)
            raise ConflictRace() from exc

        await AuditService.log_action(
            db,
            user_id=actor_id,
            action=f"ASSIGN_{models.kind.name}_PLAN",
            target_id=str(client_uuid),
            details=(
                f"Assigned {models.kind.value} plan {plan_uuid}; removed {outcome.removed_assignments} "
                f"assignment(s) and {outcome.removed_legacy_plans} legacy plan(s)"
            ),
        )
        await PlanAssignmentService._commit_or_conflict(db, client_uuid)
        await db.refresh(plan)
        return plan

    @staticmethod
    async def assign_plan_to_clients(
        db: AsyncSession,
        kind: PlanKind | str,
        plan_id: str | uuid.UUID,
        client_ids: list[str],
        *,
        actor_id: uuid.UUID | None = None,
    ) -> dict:
        models = models_for(kind)
        plan = await PlanAssignmentService.get_plan(db, models.kind, plan_id)

        assigned: list[str] = []
        skipped: list[str] = []
        for raw_client_id in dict.fromkeys(client_ids):
            try:
                client = await PlanAssignmentService.get_client(db, raw_client_id)
            except (InvalidIdentifier, NotFound) as exc:
                skipped.append(f"{raw_client_id}: {exc}")
                continue
            try:
                await PlanAssignmentService._reconcile(db, models, plan.id, client.id)
            except IntegrityError as exc:
                await db.rollback()
                raise ConflictRace() from exc
            assigned.append(str(client.id))

        if assigned:
            await AuditService.log_action(
                db,
                user_id=actor_id,
                action=f"BULK_ASSIGN_{models.kind.name}_PLAN",
                target_id=str(plan.id),
                details=f"Assigned to {len(assigned)} client(s); skipped {len(skipped)}",
            )
        await PlanAssignmentService._commit_or_conflict(db, assigned)
        await db.refresh(plan)
        return {"plan": plan, "assigned": assigned, "skipped": skipped}

    @staticmethod
    async def get_client_plans(db: AsyncSession, kind: PlanKind | str, client_id: str | uuid.UUID) -> list[Plan]:
        """
        Plans visible to a client: assignment rows joined to their plan, plus
        legacy plans carrying the client id. Deduplicated by plan id, newest
        first.
        """
        # TODO: drop the legacy half of this union once migrate_plan_assignments has run everywhere.
        models = models_for(kind)
        client_uuid = parse_identifier(client_id, label="client id")
        plan, assignment = models.plan, models.assignment

        assigned_result = await db.execute(
            select(plan)
            .join(assignment, assignment.plan_id == plan.id)
            .where(assignment.client_id == client_uuid)
        )
        legacy_result = await db.execute(
            select(plan).where(plan.client_id == client_uuid, plan.is_template.is_(False))
        )

        plans_by_id: dict[uuid.UUID, Plan] = {}
        for assigned_plan in assigned_result.scalars().all():
            plans_by_id[assigned_plan.id] = assigned_plan
        for legacy_plan in legacy_result.scalars().all():
            plans_by_id.setdefault(legacy_plan.id, legacy_plan)

        plans = sorted(plans_by_id.values(), key=lambda p: as_utc(p.created_at), reverse=True)
        if not plans:
            logger.debug("No %s plans found for client %s", models.kind.value, client_uuid)
        return plans

    @staticmethod
    async def clear_client_assignments(
        db: AsyncSession,
        kind: PlanKind | str,
        client_id: str | uuid.UUID,
        *,
        actor_id: uuid.UUID | None = None,
    ) -> int:
        models = models_for(kind)
        client_uuid = parse_identifier(client_id, label="client id")
        result = await db.execute(delete(models.assignment).where(models.assignment.client_id == client_uuid))
        removed = result.rowcount or 0
        await AuditService.log_action(
            db,
            user_id=actor_id,
            action=f"CLEAR_{models.kind.name}_ASSIGNMENTS",
            target_id=str(client_uuid),
            details=f"Removed {removed} assignment(s)",
        )
        await db.commit()
        return removed

    @staticmethod
    async def cleanup_client_assignments(
        db: AsyncSession,
        client_id: str | uuid.UUID,
        *,
        actor_id: uuid.UUID | None = None,
    ) -> dict[str, int]:
        """Keep only the latest assignment per kind and drop stale legacy plans for a client."""
        client = await PlanAssignmentService.get_client(db, client_id)
        summary: dict[str, int] = {}

        for models in PLAN_MODELS.values():
            assignment = models.assignment
            rows = (
                await db.execute(
                    select(assignment)
                    .where(assignment.client_id == client.id)
                    .order_by(assignment.assigned_at.desc())
                )
            ).scalars().all()
            kept_plan_id = rows[0].plan_id if rows else None
            stale_ids = [row.id for row in rows[1:]]
            removed_assignments = 0
            if stale_ids:
                result = await db.execute(delete(assignment).where(assignment.id.in_(stale_ids)))
                removed_assignments = result.rowcount or 0

            legacy_filter = [models.plan.client_id == client.id, models.plan.is_template.is_(False)]
            if kept_plan_id is not None:
                legacy_filter.append(models.plan.id != kept_plan_id)
            legacy = await db.execute(delete(models.plan).where(*legacy_filter))

            summary[f"{models.kind.value}_assignments_removed"] = removed_assignments
            summary[f"{models.kind.value}_legacy_plans_removed"] = legacy.rowcount or 0

        logger.info("Cleanup for client %s: %s", client.id, summary)
        await AuditService.log_action(
            db,
            user_id=actor_id,
            action="CLEANUP_CLIENT_ASSIGNMENTS",
            target_id=str(client.id),
            details=str(summary),
        )
        await db.commit()
        return summary

    @staticmethod
    async def clone_plan(
        db: AsyncSession,
        kind: PlanKind | str,
        plan_id: str | uuid.UUID,
        *,
        client_id: str | uuid.UUID | None = None,
        name: str | None = None,
        actor_id: uuid.UUID | None = None,
    ) -> Plan:
        """Copy a plan; with a client the copy is assigned to them through the reconciler."""
        models = models_for(kind)
        source = await PlanAssignmentService.get_plan(db, models.kind, plan_id)
        client = await PlanAssignmentService.get_client(db, client_id) if client_id is not None else None

        content = {
            column.key: getattr(source, column.key)
            for column in models.plan.__table__.columns
            if column.key not in _NON_CONTENT_COLUMNS
        }
        if name:
            content["name"] = name
        elif client is None:
            content["name"] = f"{source.name} (Copy)"

        clone = models.plan(
            **content,
            is_template=False if client is not None else source.is_template,
            cloned_from_id=source.id,
        )
        db.add(clone)
        if source.is_template:
            source.times_cloned = (source.times_cloned or 0) + 1
            if client is not None:
                source.assigned_count = (source.assigned_count or 0) + 1
        await db.flush()

        if client is not None:
            try:
                await PlanAssignmentService._reconcile(db, models, clone.id, client.id)
            except IntegrityError as exc:
                await db.rollback()
                raise ConflictRace() from exc

        await AuditService.log_action(
            db,
            user_id=actor_id,
            action=f"CLONE_{models.kind.name}_PLAN",
            target_id=str(clone.id),
            details=f"Cloned from {source.id}" + (f" for client {client.id}" if client else ""),
        )
        await PlanAssignmentService._commit_or_conflict(db, client.id if client else None)
        await db.refresh(clone)
        return clone

    @staticmethod
    async def delete_plan(
        db: AsyncSession,
        kind: PlanKind | str,
        plan_id: str | uuid.UUID,
        *,
        actor_id: uuid.UUID | None = None,
    ) -> None:
        models = models_for(kind)
        plan = await PlanAssignmentService.get_plan(db, models.kind, plan_id)
        await db.execute(delete(models.assignment).where(models.assignment.plan_id == plan.id))
        await db.delete(plan)
        await AuditService.log_action(
            db,
            user_id=actor_id,
            action=f"DELETE_{models.kind.name}_PLAN",
            target_id=str(plan.id),
        )
        await db.commit()
