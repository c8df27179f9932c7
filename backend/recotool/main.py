"""RecoTool classification API: main entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from recotool.config import settings
from recotool.core.database import async_session_factory, engine
from recotool.core.exceptions import register_exception_handlers
from recotool.core.logging_config import configure_logging
from recotool.core.middleware import RequestLoggingMiddleware
from recotool.services.rule_service import RuleService

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    logger.info("Starting RecoTool API", env=settings.app_env)
    if settings.rules_seed_on_startup:
        async with async_session_factory() as session:
            await RuleService(session).seed_default_rules()
            await session.commit()
    yield
    logger.info("Shutting down RecoTool API")
    await engine.dispose()


app = FastAPI(
    title="RecoTool API",
    description="Rule-based classification of reconciliation lines",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    redirect_slashes=False,
)

# ── Middleware ─────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)


# ── Health Check ──────────────────────────────────
@app.get("/health", tags=["system"])
async def health_check():
    """Liveness check: healthy whenever the process is running."""
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/ready", tags=["system"])
async def readiness_check():
    """Readiness check against the database connection."""
    checks = {"database": "unknown", "api": "ok"}
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"
        return {"status": "degraded", "checks": checks}

    return {"status": "ready", "checks": checks}


# ── API Routes ────────────────────────────────────
from recotool.api.v1 import reconciliation, rules  # noqa: E402

app.include_router(rules.router, prefix="/api/v1/rules", tags=["rules"])
app.include_router(reconciliation.router, prefix="/api/v1/reconciliation", tags=["reconciliation"])
