"""Bookkeeping API: FastAPI Application."""
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from bookkeeping.config import settings
from bookkeeping.database import build_engine, build_session_factory, get_db, init_db
from bookkeeping.errors import register_exception_handlers
from bookkeeping.middleware.request_logging import RequestLoggingMiddleware

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Bookkeeping API...")

    engine = build_engine(settings)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    # Verify DB connection
    try:
        async with engine.begin() as conn:
            await conn.exec_driver_sql("SELECT 1")
        logger.info("Database connection verified")
        if settings.AUTO_CREATE_SCHEMA:
            await init_db(engine)
            logger.info("Schema and reference data ready")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")

    logger.info("Bookkeeping API started successfully")
    yield

    # Shutdown
    await engine.dispose()
    logger.info("Bookkeeping API shut down")


app = FastAPI(
    title="Bookkeeping API",
    description="Double-entry bookkeeping: Chart of Accounts, Journal Entries, General Ledger and Reports",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# One access-log line per request
app.add_middleware(
    RequestLoggingMiddleware,
    quiet_paths=[f"{settings.API_PREFIX}/health"],
)

register_exception_handlers(app)

# Import and register routers
from bookkeeping.routes import accounts, general_ledger, journal_entries, organizations, reports

app.include_router(organizations.router, prefix=settings.API_PREFIX)
app.include_router(accounts.router, prefix=settings.API_PREFIX)
app.include_router(journal_entries.router, prefix=settings.API_PREFIX)
app.include_router(general_ledger.router, prefix=settings.API_PREFIX)
app.include_router(reports.router, prefix=settings.API_PREFIX)


@app.get(f"{settings.API_PREFIX}/health")
async def health_check():
    return {
        "status": "ok",
        "service": "Bookkeeping API",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.ENVIRONMENT,
    }


@app.get(f"{settings.API_PREFIX}/health/db")
async def database_health_check(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return {"success": True, "status": "ok", "database": "reachable"}
