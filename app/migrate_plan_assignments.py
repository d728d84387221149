import argparse
import asyncio
import json

from app.database import AsyncSessionLocal, engine
from app.models.enums import PlanKind
from app.services.plan_migration_service import migrate_legacy_plan_assignments


async def main(kind: PlanKind | None, dry_run: bool) -> None:
    async with AsyncSessionLocal() as session:
        report = await migrate_legacy_plan_assignments(session, kind, dry_run=dry_run)
    await engine.dispose()
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Convert legacy client-linked plans into assignment rows.")
    parser.add_argument("--kind", choices=[k.value for k in PlanKind], default=None)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()
    asyncio.run(main(PlanKind(args.kind) if args.kind else None, args.dry_run))
