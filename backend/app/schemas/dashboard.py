import datetime as dt
from datetime import datetime

from app.schemas.common import CamelModel, Pagination
from app.schemas.generation import GenerationSummary


class OverviewStats(CamelModel):
    total_generations: int
    today_generations: int
    week_generations: int
    month_generations: int
    total_errors: int
    today_errors: int
    error_rate: str


class UserStats(CamelModel):
    today_unique_ips: int
    today_unique_fingerprints: int
    total_unique_ips: int


class CostStats(CamelModel):
    total_usd: float
    today_usd: float
    week_usd: float
    month_usd: float
    total_pln: str
    month_pln: str


class PerformanceStats(CamelModel):
    avg_latency_ms: int
    today_avg_latency_ms: int


class TokenStats(CamelModel):
    total_input: int
    total_output: int
    total: int


class LengthBucket(CamelModel):
    length: int
    count: int


class DashboardResponse(CamelModel):
    overview: OverviewStats
    users: UserStats
    costs: CostStats
    performance: PerformanceStats
    tokens: TokenStats
    length_distribution: list[LengthBucket]
    recent_generations: list[GenerationSummary]


class UserSummary(CamelModel):
    ip: str
    fingerprint: str
    total_generations: int
    completed: int
    errors: int
    total_cost: float
    total_tokens: int
    avg_latency: int
    first_seen: datetime
    last_seen: datetime
    today_count: int


class UserListResponse(CamelModel):
    users: list[UserSummary]
    pagination: Pagination


class IpStats(CamelModel):
    count: int
    total_cost: float
    avg_cost: float
    total_tokens: int
    avg_latency: int


class UserDetailResponse(CamelModel):
    ip: str
    generations: list[GenerationSummary]
    stats: IpStats
    bonus: int
    effective_limit: int


class HourlyStat(CamelModel):
    hour: int
    count: int
    completed: int
    errors: int
    cost: float
    avg_latency: int


class DailyStat(CamelModel):
    date: dt.date
    count: int
    unique_ips: int
    cost: float
    avg_latency: int
    tokens: int
