import logging
import uuid
from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PlanKind
from app.services.audit_service import AuditService
from app.services.plan_assignment_service import PLAN_MODELS, PlanModels
from app.services.timezone_service import as_utc

logger = logging.getLogger(__name__)


async def _migrate_kind(db: AsyncSession, models: PlanModels, *, dry_run: bool) -> dict[str, int]:
    plan, assignment = models.plan, models.assignment
    legacy_plans = (
        await db.execute(
            select(plan).where(plan.client_id.is_not(None), plan.is_template.is_(False))
        )
    ).scalars().all()

    by_client: dict[uuid.UUID, list] = defaultdict(list)
    for legacy_plan in legacy_plans:
        by_client[legacy_plan.client_id].append(legacy_plan)

    assigned_clients = set(
        (await db.execute(select(assignment.client_id).where(assignment.client_id.in_(list(by_client))))).scalars().all()
    ) if by_client else set()

    created = 0
    for client_id, plans in by_client.items():
        if client_id in assigned_clients:
            continue
        newest = max(plans, key=lambda p: as_utc(p.created_at))
        if not dry_run:
            db.add(assignment(plan_id=newest.id, client_id=client_id))
        created += 1

    if not dry_run:
        for legacy_plan in legacy_plans:
            legacy_plan.client_id = None

    return {
        "legacy_plans": len(legacy_plans),
        "clients": len(by_client),
        "assignments_created": created,
        "clients_already_assigned": len(assigned_clients),
    }


async def migrate_legacy_plan_assignments(
    db: AsyncSession,
    kind: PlanKind | None = None,
    *,
    dry_run: bool = False,
) -> dict[str, dict[str, int]]:
    """
    Move legacy plan ownership (client id on the plan row) into assignment rows.

    For each client the newest legacy plan becomes the assignment unless the
    client already has one; every legacy plan then loses its embedded client
    id. Superseded legacy plans are left in place as unassigned plans.
    """
    kinds = [kind] if kind else list(PLAN_MODELS)
    report: dict[str, dict[str, int]] = {}
    for plan_kind in kinds:
        report[plan_kind.value] = await _migrate_kind(db, PLAN_MODELS[plan_kind], dry_run=dry_run)
        logger.info("Legacy %s plan migration%s: %s", plan_kind.value, " (dry run)" if dry_run else "", report[plan_kind.value])

    if dry_run:
        await db.rollback()
        return report

    await AuditService.log_action(
        db,
        user_id=None,
        action="MIGRATE_LEGACY_PLAN_ASSIGNMENTS",
        details=str(report),
    )
    await db.commit()
    return report
