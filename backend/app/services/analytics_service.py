"""Aggregations behind the admin dashboard and time-bucketed statistics."""

from collections import defaultdict
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.generation import GenerationStatus
from app.repositories.dashboard_repository import ActivityRow, DashboardRepository
from app.schemas.dashboard import (
    CostStats,
    DailyStat,
    DashboardResponse,
    HourlyStat,
    LengthBucket,
    OverviewStats,
    PerformanceStats,
    TokenStats,
    UserStats,
)
from app.schemas.generation import GenerationSummary
from app.services.quota_service import day_window, local_midnight

WEEK_DAYS = 7
DAILY_STATS_DAYS = 30
RECENT_GENERATIONS = 10


def round_ms(value: float) -> int:
    """Round a latency to whole milliseconds, halves up."""
    return int(value + 0.5)


def format_error_rate(errors: int, total: int) -> str:
    if total == 0:
        return "0%"
    return f"{errors / total * 100:.1f}%"


def to_pln(usd: float) -> str:
    return f"{usd * settings.USD_PLN_RATE:.2f}"


def _average(values: list[int]) -> int:
    return round_ms(sum(values) / len(values)) if values else 0


class AnalyticsService:
    """Builds admin reports from the generation records.

    Period boundaries use server local time, the same clock as the quota
    day. Hourly and daily buckets are computed in Python so that the
    reports behave the same on every database backend.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = DashboardRepository(db)

    def dashboard(self, now: datetime | None = None) -> DashboardResponse:
        current = (now or datetime.now()).astimezone()
        start_of_day, _ = day_window(current)
        start_of_week = current - timedelta(days=WEEK_DAYS)
        start_of_month = local_midnight(current.date().replace(day=1))

        total = self.repo.count_generations()
        total_errors = self.repo.count_generations(status=GenerationStatus.ERROR)

        total_cost = self.repo.sum_cost()
        month_cost = self.repo.sum_cost(start_of_month)
        tokens = self.repo.token_totals()

        return DashboardResponse(
            overview=OverviewStats(
                total_generations=total,
                today_generations=self.repo.count_generations(start_of_day),
                week_generations=self.repo.count_generations(start_of_week),
                month_generations=self.repo.count_generations(start_of_month),
                total_errors=total_errors,
                today_errors=self.repo.count_generations(start_of_day, GenerationStatus.ERROR),
                error_rate=format_error_rate(total_errors, total),
            ),
            users=UserStats(
                today_unique_ips=self.repo.count_unique_ips(start_of_day),
                today_unique_fingerprints=self.repo.count_unique_fingerprints(start_of_day),
                total_unique_ips=self.repo.count_unique_ips(),
            ),
            costs=CostStats(
                total_usd=total_cost,
                today_usd=self.repo.sum_cost(start_of_day),
                week_usd=self.repo.sum_cost(start_of_week),
                month_usd=month_cost,
                total_pln=to_pln(total_cost),
                month_pln=to_pln(month_cost),
            ),
            performance=PerformanceStats(
                avg_latency_ms=round_ms(self.repo.avg_completed_latency()),
                today_avg_latency_ms=round_ms(self.repo.avg_completed_latency(start_of_day)),
            ),
            tokens=TokenStats(
                total_input=tokens.input_tokens,
                total_output=tokens.output_tokens,
                total=tokens.total_tokens,
            ),
            length_distribution=[
                LengthBucket(length=length, count=count)
                for length, count in self.repo.length_distribution()
            ],
            recent_generations=[
                GenerationSummary.model_validate(g)
                for g in self.repo.recent_generations(RECENT_GENERATIONS)
            ],
        )

    def hourly(self, now: datetime | None = None) -> list[HourlyStat]:
        """Today's activity per local hour; hours without records are omitted."""
        start_of_day, _ = day_window(now)
        buckets: dict[int, list[ActivityRow]] = defaultdict(list)
        for row in self.repo.activity_since(start_of_day):
            buckets[row.created_at.astimezone().hour].append(row)

        stats = []
        for hour in sorted(buckets):
            rows = buckets[hour]
            stats.append(
                HourlyStat(
                    hour=hour,
                    count=len(rows),
                    completed=sum(1 for r in rows if r.status == GenerationStatus.COMPLETED.value),
                    errors=sum(1 for r in rows if r.status == GenerationStatus.ERROR.value),
                    cost=sum(r.cost_usd or 0.0 for r in rows),
                    avg_latency=_average([r.latency_ms for r in rows if r.latency_ms is not None]),
                )
            )
        return stats

    def daily(self, now: datetime | None = None, days: int = DAILY_STATS_DAYS) -> list[DailyStat]:
        """Per local day activity over the trailing ``days`` days."""
        current = (now or datetime.now()).astimezone()
        buckets: dict[date, list[ActivityRow]] = defaultdict(list)
        for row in self.repo.activity_since(current - timedelta(days=days)):
            buckets[row.created_at.astimezone().date()].append(row)

        stats = []
        for day in sorted(buckets):
            rows = buckets[day]
            stats.append(
                DailyStat(
                    date=day,
                    count=len(rows),
                    unique_ips=len({r.ip for r in rows}),
                    cost=sum(r.cost_usd or 0.0 for r in rows),
                    avg_latency=_average([r.latency_ms for r in rows if r.latency_ms is not None]),
                    tokens=sum(r.total_tokens or 0 for r in rows),
                )
            )
        return stats
