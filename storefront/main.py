"""
Storefront Shipping Service
FastAPI application entry point

- Rate limiting with SlowAPI
- Error sanitization middleware and structured error responses
- Health endpoint with DB ping when a database is configured
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from storefront import __version__
from storefront.api.routes import admin_shipping, shipping
from storefront.core.config import settings
from storefront.core.database import (
    create_tables,
    database_configured,
    dispose_engine,
    get_db_session,
)
from storefront.core.error_handler import register_error_handlers
from storefront.core.rate_limit import limiter, rate_limit_exceeded_handler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup, release the connection pool on shutdown."""
    if database_configured():
        await create_tables()
        logger.info("Shipping settings table ready")
    else:
        logger.info("No DATABASE_URL configured; shipping settings kept in memory")

    yield

    await dispose_engine()
    logger.info("Database engine disposed")


app = FastAPI(
    lifespan=lifespan,
    title=f"{settings.APP_NAME} Shipping API",
    description="Shipping rate quotes and shipping configuration for the storefront.",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Structured StorefrontError responses + unhandled exception sanitization
register_error_handlers(app)

# CORS - adjust origins for production
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(shipping.router, prefix=settings.API_PREFIX, tags=["Shipping"])
app.include_router(admin_shipping.router, prefix=settings.API_PREFIX, tags=["Admin - Shipping"])


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness. Returns 503 if a configured database is unreachable."""
    health_status = {
        "status": "healthy",
        "database": "not_configured",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if database_configured():
        try:
            async with get_db_session() as db:
                await db.execute(text("SELECT 1"))
            health_status["database"] = "connected"
        except Exception as e:
            health_status["database"] = f"error: {type(e).__name__}: {str(e)[:100]}"
            health_status["status"] = "unhealthy"
            return JSONResponse(status_code=503, content=health_status)

    return health_status
