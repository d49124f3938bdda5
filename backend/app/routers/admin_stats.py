from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.dashboard import DailyStat, DashboardResponse, HourlyStat
from app.services.analytics_service import AnalyticsService

router = APIRouter()


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard overview",
    responses={401: {"description": "Unauthorized – invalid or missing admin token"}},
)
async def get_dashboard(db: Session = Depends(get_db)) -> DashboardResponse:
    """Counts, costs, latency, tokens and the latest generations."""
    return AnalyticsService(db).dashboard()


@router.get("/stats/hourly", response_model=list[HourlyStat], summary="Today's activity per hour")
async def get_hourly_stats(db: Session = Depends(get_db)) -> list[HourlyStat]:
    return AnalyticsService(db).hourly()


@router.get("/stats/daily", response_model=list[DailyStat], summary="Activity per day, last 30 days")
async def get_daily_stats(db: Session = Depends(get_db)) -> list[DailyStat]:
    return AnalyticsService(db).daily()
