from app.models.generation import Generation, GenerationStatus
from app.models.limit_override import LimitOverride

__all__ = [
    "Generation",
    "GenerationStatus",
    "LimitOverride",
]
