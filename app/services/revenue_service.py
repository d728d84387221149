import calendar
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.client import Client, Package
from app.models.enums import ClientStatus
from app.services.timezone_service import as_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_DURATION_WEEKS = 4
SECONDS_PER_DAY = 24 * 60 * 60


def month_bounds(target_month: date | datetime) -> tuple[datetime, datetime]:
    """First instant and 23:59:59 of the last day of target_month's calendar month, in UTC."""
    if not isinstance(target_month, date):
        raise TypeError(f"target_month must be a date or datetime, got {type(target_month).__name__}")
    year, month = target_month.year, target_month.month
    last_day = calendar.monthrange(year, month)[1]
    return (
        datetime(year, month, 1, tzinfo=timezone.utc),
        datetime(year, month, last_day, 23, 59, 59, tzinfo=timezone.utc),
    )


def shift_month(target_month: date, months: int) -> date:
    index = target_month.year * 12 + (target_month.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_range(first: date, last: date) -> list[date]:
    """First-of-month dates from first to last, inclusive."""
    months: list[date] = []
    current = date(first.year, first.month, 1)
    while current <= last:
        months.append(current)
        current = shift_month(current, 1)
    return months


def _duration_weeks(value: int | None, default: int) -> int:
    # zero or missing durations fall back to the default instead of dividing by zero
    if not value or value <= 0:
        return default
    return value


def _subscription_window(client: Any, duration_weeks: int) -> tuple[datetime, datetime] | None:
    start = client.subscription_start_date or client.created_at
    if start is None:
        return None
    start = as_utc(start)
    if client.subscription_end_date is not None:
        end = as_utc(client.subscription_end_date)
    else:
        end = start + timedelta(weeks=duration_weeks)
    return start, end


def prorated_contribution(
    client: Any,
    package_map: dict[str, Any],
    month_start: datetime,
    month_end: datetime,
    *,
    default_duration_weeks: int = DEFAULT_PACKAGE_DURATION_WEEKS,
) -> float:
    if not client.package_id or client.status != ClientStatus.ACTIVE:
        return 0.0

    package = package_map.get(str(client.package_id))
    if package is None:
        return 0.0

    duration_weeks = _duration_weeks(client.package_duration, default_duration_weeks)
    window = _subscription_window(client, duration_weeks)
    if window is None:
        return 0.0
    start, end = window
    if start > month_end or end < month_start:
        return 0.0

    overlap = min(end, month_end) - max(start, month_start)
    overlap_weeks = max(0.0, overlap.total_seconds() / SECONDS_PER_DAY / 7)
    price = max(0.0, float(package.price or 0))

    if overlap_weeks >= duration_weeks:
        return price
    return price * overlap_weeks / duration_weeks


def calculate_monthly_revenue(
    clients: Iterable[Any],
    packages: Iterable[Any],
    target_month: date | datetime,
    *,
    default_duration_weeks: int = DEFAULT_PACKAGE_DURATION_WEEKS,
) -> float:
    """
    Revenue attributable to one calendar month.

    Each active client's package price is a flat fee for package_duration
    weeks; the month receives price * overlap_weeks / duration, capped at the
    full price. Clients without a resolvable package, a start date or an
    overlap contribute nothing. The result is unrounded.
    """
    month_start, month_end = month_bounds(target_month)
    package_map = {str(package.id): package for package in packages}
    return sum(
        (
            prorated_contribution(
                client,
                package_map,
                month_start,
                month_end,
                default_duration_weeks=default_duration_weeks,
            )
            for client in clients
        ),
        0.0,
    )


def round_currency(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _window_intersects(client: Client, month_start: datetime, month_end: datetime) -> bool:
    if client.subscription_start_date is None or client.subscription_end_date is None:
        return False
    return (
        as_utc(client.subscription_start_date) <= month_end
        and as_utc(client.subscription_end_date) >= month_start
    )


def _started_in(client: Client, month_start: datetime, month_end: datetime) -> bool:
    if client.subscription_start_date is None:
        return False
    return month_start <= as_utc(client.subscription_start_date) <= month_end


class RevenueService:
    @staticmethod
    async def _load_clients_and_packages(db: AsyncSession) -> tuple[list[Client], list[Package]]:
        clients = (await db.execute(select(Client))).scalars().all()
        # archived packages no longer resolve, so their clients contribute nothing
        packages = (await db.execute(select(Package).where(Package.archived_at.is_(None)))).scalars().all()
        logger.debug("Loaded %s clients and %s packages for revenue report", len(clients), len(packages))
        return list(clients), list(packages)

    @staticmethod
    async def get_monthly_revenue(db: AsyncSession, month: date) -> dict:
        clients, packages = await RevenueService._load_clients_and_packages(db)
        revenue = calculate_monthly_revenue(
            clients, packages, month, default_duration_weeks=settings.DEFAULT_PACKAGE_DURATION_WEEKS
        )
        return {"month": month.strftime("%Y-%m"), "revenue": round_currency(revenue)}

    @staticmethod
    async def get_revenue_trends(db: AsyncSession, months: list[date]) -> list[dict]:
        clients, packages = await RevenueService._load_clients_and_packages(db)
        trends = []
        for month in months:
            month_start, month_end = month_bounds(month)
            revenue = calculate_monthly_revenue(
                clients, packages, month, default_duration_weeks=settings.DEFAULT_PACKAGE_DURATION_WEEKS
            )
            trends.append({
                "month": month.strftime("%Y-%m"),
                "label": month.strftime("%b %Y"),
                "revenue": round_currency(revenue),
                "client_count": sum(1 for c in clients if _window_intersects(c, month_start, month_end)),
                "new_clients": sum(1 for c in clients if _started_in(c, month_start, month_end)),
            })
        return trends

    @staticmethod
    async def get_revenue_stats(db: AsyncSession, now: datetime | None = None) -> dict:
        """Current month against the previous one, with growth in percent."""
        now = now or utcnow()
        current_month = date(now.year, now.month, 1)
        last_month = shift_month(current_month, -1)

        clients, packages = await RevenueService._load_clients_and_packages(db)
        default_weeks = settings.DEFAULT_PACKAGE_DURATION_WEEKS
        current = calculate_monthly_revenue(clients, packages, current_month, default_duration_weeks=default_weeks)
        previous = calculate_monthly_revenue(clients, packages, last_month, default_duration_weeks=default_weeks)

        if previous > 0:
            growth_rate = (current - previous) / previous * 100
        else:
            growth_rate = 100.0 if current > 0 else 0.0

        return {
            "month": current_month.strftime("%Y-%m"),
            "total_revenue": round_currency(current),
            "last_month_revenue": round_currency(previous),
            "growth_rate": round(growth_rate, 1),
        }
