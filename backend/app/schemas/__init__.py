from app.schemas.common import CamelModel, Pagination
from app.schemas.dashboard import (
    DailyStat,
    DashboardResponse,
    HourlyStat,
    UserDetailResponse,
    UserListResponse,
    UserSummary,
)
from app.schemas.generation import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    DeleteResponse,
    GenerateRequest,
    GenerateResponse,
    GenerationDetail,
    GenerationListResponse,
    GenerationMetrics,
    GenerationSummary,
    LimitStatusResponse,
)
from app.schemas.limit_override import (
    LimitOverrideDeleteResponse,
    LimitOverrideResponse,
    LimitOverrideUpdate,
)

__all__ = [
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    "CamelModel",
    "DailyStat",
    "DashboardResponse",
    "DeleteResponse",
    "GenerateRequest",
    "GenerateResponse",
    "GenerationDetail",
    "GenerationListResponse",
    "GenerationMetrics",
    "GenerationSummary",
    "HourlyStat",
    "LimitOverrideDeleteResponse",
    "LimitOverrideResponse",
    "LimitOverrideUpdate",
    "LimitStatusResponse",
    "Pagination",
    "UserDetailResponse",
    "UserListResponse",
    "UserSummary",
]
