from app.repositories.dashboard_repository import DashboardRepository
from app.repositories.generation_repository import GenerationFilters, GenerationRepository
from app.repositories.limit_override_repository import LimitOverrideRepository

__all__ = [
    "DashboardRepository",
    "GenerationFilters",
    "GenerationRepository",
    "LimitOverrideRepository",
]
