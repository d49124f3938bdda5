import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.auth import require_admin
from app.core.config import settings
from app.core.database import init_db
from app.core.errors import register_exception_handlers
from app.core.logging_config import setup_logging
from app.routers import admin_generations, admin_stats, admin_users, generate
from app.services.text_generator import close_text_generator

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "Generate", "description": "Text generation under a daily quota."},
    {"name": "Admin", "description": "Generation records, usage statistics and quota overrides."},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    if settings.APP_AUTO_CREATE_TABLES:
        init_db()
    logger.info(
        "%s %s started (model=%s, daily limit=%d)",
        settings.APP_NAME,
        settings.version,
        settings.GENERATION_MODEL,
        settings.DAILY_LIMIT,
    )
    yield
    await close_text_generator()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Quota-limited copywriting API in front of a text-generation model, "
        "with an admin surface for generation records and usage statistics."
    ),
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(generate.router, prefix="/api", tags=["Generate"])

admin_dependencies = [Depends(require_admin)]
app.include_router(
    admin_stats.router, prefix="/api/admin", tags=["Admin"], dependencies=admin_dependencies
)
app.include_router(
    admin_generations.router,
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=admin_dependencies,
)
app.include_router(
    admin_users.router, prefix="/api/admin", tags=["Admin"], dependencies=admin_dependencies
)


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "status": "running",
    }
