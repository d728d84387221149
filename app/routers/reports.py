from typing import Annotated, List
from datetime import date
import re

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import dependencies
from app.config import settings
from app.core.responses import StandardResponse
from app.database import get_db
from app.models.user import User
from app.services.revenue_service import RevenueService, month_range, shift_month
from app.services.timezone_service import utcnow

router = APIRouter()

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
# trend windows step one month past the last requested month
MIN_YEAR, MAX_YEAR = 1, 9998


class MonthlyRevenueResponse(BaseModel):
    month: str
    revenue: int


class RevenueTrendRow(BaseModel):
    month: str
    label: str
    revenue: int
    client_count: int
    new_clients: int


class RevenueTrendsResponse(BaseModel):
    trends: List[RevenueTrendRow]


class RevenueStatsResponse(BaseModel):
    month: str
    total_revenue: int
    last_month_revenue: int
    growth_rate: float


def _parse_month(value: str, param: str) -> date:
    match = MONTH_PATTERN.match(value.strip())
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise HTTPException(status_code=400, detail=f"Invalid {param}; expected YYYY-MM")
    year = int(match.group(1))
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise HTTPException(status_code=400, detail=f"Invalid {param}; year must be between {MIN_YEAR} and {MAX_YEAR}")
    return date(year, int(match.group(2)), 1)


def _current_month() -> date:
    now = utcnow()
    return date(now.year, now.month, 1)


def _check_window_size(count: int) -> None:
    if count > settings.REVENUE_TRENDS_MAX_MONTHS:
        raise HTTPException(
            status_code=400,
            detail=f"Revenue trends are limited to {settings.REVENUE_TRENDS_MAX_MONTHS} months",
        )


def _trend_window(first: date, last: date) -> List[date]:
    count = (last.year - first.year) * 12 + last.month - first.month + 1
    if count < 1:
        raise HTTPException(status_code=400, detail="'from' must not be after 'to'")
    _check_window_size(count)
    return month_range(first, last)


@router.get("/revenue", response_model=StandardResponse[MonthlyRevenueResponse | RevenueTrendsResponse])
async def get_revenue(
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    month: str | None = Query(None, description="Single month, YYYY-MM"),
    from_month: str | None = Query(None, alias="from", description="First month of a range, YYYY-MM"),
    to_month: str | None = Query(None, alias="to", description="Last month of a range, YYYY-MM"),
    months: int | None = Query(None, ge=1, description="Trailing months ending with the current one"),
):
    """
    Prorated revenue.

    `month` returns one figure; `from`/`to` or `months` return a trend series.
    Without parameters the current month is reported.
    """
    if from_month is not None or to_month is not None:
        if from_month is None or to_month is None:
            raise HTTPException(status_code=400, detail="'from' and 'to' must be given together")
        window = _trend_window(_parse_month(from_month, "from"), _parse_month(to_month, "to"))
        trends = await RevenueService.get_revenue_trends(db, window)
        return StandardResponse(data=RevenueTrendsResponse(trends=trends))

    if months is not None:
        _check_window_size(months)
        last = _current_month()
        window = _trend_window(shift_month(last, 1 - months), last)
        trends = await RevenueService.get_revenue_trends(db, window)
        return StandardResponse(data=RevenueTrendsResponse(trends=trends))

    target = _parse_month(month, "month") if month is not None else _current_month()
    result = await RevenueService.get_monthly_revenue(db, target)
    return StandardResponse(data=MonthlyRevenueResponse(**result))


@router.get("/revenue/stats", response_model=StandardResponse[RevenueStatsResponse])
async def get_revenue_stats(
    current_user: Annotated[User, Depends(dependencies.get_current_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    stats = await RevenueService.get_revenue_stats(db)
    return StandardResponse(data=RevenueStatsResponse(**stats))
