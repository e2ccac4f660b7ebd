# itasks/main.py - iTasks helpdesk API application
from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from contextlib import asynccontextmanager
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import time
import asyncio

from itasks.core.config import settings
from itasks.core import tracing
from itasks.core.events import event_bus
from itasks.core.recurring import evaluate_due_configs
from itasks.db.database import get_db, init_db, engine, AsyncSessionLocal
from itasks.db import crud
from itasks.api.v1 import api_router
from itasks.integrations.notifier import NotificationDispatcher
from itasks.middleware.security import SecurityHeadersMiddleware, setup_cors_middleware
from itasks.middleware.rate_limiting import limiter
from itasks.middleware.monitoring import MonitoringMiddleware, record_event, record_generation
from itasks.exceptions.domain import ITasksError
from itasks.exceptions.handlers import (
    domain_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    rate_limit_exception_handler,
    global_exception_handler,
    starlette_http_exception_handler,
)

SERVICE_NAME = "iTasks API"
VERSION = "1.0.0"

tracing_enabled = False


async def recurring_scheduler():
    """Evaluate recurring configs every RECURRING_CHECK_INTERVAL_SECONDS"""
    while True:
        tracing.set_trace_context(tracing.generate_trace_id(), tracing.generate_span_id())
        try:
            async with AsyncSessionLocal() as db:
                result = await evaluate_due_configs(db, event_bus)
                record_generation(result)
        except Exception as e:
            tracing.error(f"Recurring scheduler pass failed: {e}",
                          task="recurring_scheduler",
                          error_type=type(e).__name__)

        await asyncio.sleep(settings.RECURRING_CHECK_INTERVAL_SECONDS)


async def periodic_token_cleanup():
    """Drop blacklisted tokens that have expired anyway"""
    while True:
        try:
            async with AsyncSessionLocal() as db:
                removed = await crud.delete_expired_blacklisted_tokens(db)
                tracing.info("Token cleanup completed", removed=removed, task="periodic_cleanup")
        except Exception as e:
            tracing.error(f"Token cleanup failed: {e}",
                          task="periodic_cleanup",
                          error_type=type(e).__name__)

        await asyncio.sleep(3600)


async def _cancel(task: asyncio.Task):
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    tracing.info(f"{SERVICE_NAME} startup initiated")

    try:
        await init_db()
    except Exception as e:
        tracing.error(f"Database initialization failed: {e}")
        raise

    dispatcher = event_bus.subscribe(NotificationDispatcher(AsyncSessionLocal))
    event_bus.subscribe(record_event)

    background = [asyncio.create_task(periodic_token_cleanup())]
    if settings.RECURRING_SCHEDULER_ENABLED:
        background.append(asyncio.create_task(recurring_scheduler()))

    tracing.info(f"Environment: {settings.ENVIRONMENT}")
    tracing.info(f"Tracing: {'Enabled' if tracing_enabled else 'Disabled'}")
    tracing.info(f"Rate Limiting: {'Enabled' if settings.RATE_LIMIT_ENABLED else 'Disabled'}")
    if settings.RECURRING_SCHEDULER_ENABLED:
        tracing.info(f"Recurring scheduler: every {settings.RECURRING_CHECK_INTERVAL_SECONDS}s")
    tracing.info(f"{SERVICE_NAME} v{VERSION} startup complete")

    yield

    tracing.info(f"{SERVICE_NAME} shutdown initiated")
    for task in background:
        await _cancel(task)
    event_bus.unsubscribe(dispatcher)
    event_bus.unsubscribe(record_event)
    tracing.info(f"{SERVICE_NAME} shutdown complete")


app = FastAPI(
    title=SERVICE_NAME,
    description="IT helpdesk task tracking with SLA monitoring and recurring tasks",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
    openapi_url="/openapi.json" if settings.ENVIRONMENT == "development" else None
)

# Tracing: OpenTelemetry when enabled, local trace ids otherwise
try:
    tracing_enabled = tracing.setup_tracing(app, engine)
except Exception as e:
    tracing.error(f"Failed to initialize tracing: {e}")
    tracing_enabled = False

# =============================================================================
# MIDDLEWARE
# =============================================================================

app.add_middleware(MonitoringMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
setup_cors_middleware(app)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

app.add_exception_handler(ITasksError, domain_exception_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(StarletteHTTPException, starlette_http_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# =============================================================================
# PROMETHEUS METRICS
# =============================================================================

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_instrument_requests_inprogress=True,
    inprogress_labels=True
)
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

# =============================================================================
# ROUTES
# =============================================================================

app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["System"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """Health check with a database round trip"""
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        tracing.error(f"Health check failed: {e}",
                      endpoint="/health",
                      error_type=type(e).__name__)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service unhealthy - database connection failed"
        )

    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "environment": settings.ENVIRONMENT,
        "timestamp": time.time(),
        "trace_id": tracing.get_current_trace_id(),
        "checks": {
            "database": "connected",
            "tracing": "enabled" if tracing_enabled else "disabled",
            "recurring_scheduler": "enabled" if settings.RECURRING_SCHEDULER_ENABLED else "disabled",
        }
    }


@app.get("/", tags=["System"])
async def api_information():
    return {
        "message": f"{SERVICE_NAME} - helpdesk tasks, SLA monitoring and recurring tasks",
        "version": VERSION,
        "environment": settings.ENVIRONMENT,
        "status": "operational",
        "trace_id": tracing.get_current_trace_id(),
        "endpoints": {
            "health": "/health",
            "metrics": "/metrics",
            "authentication": "/api/v1/auth",
            "tasks": "/api/v1/tasks",
            "recurring": "/api/v1/recurring",
            "sla": "/api/v1/sla",
            "documentation": "/docs" if settings.ENVIRONMENT == "development" else "Contact administrator"
        },
        "timestamp": time.time()
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("itasks.main:app", host="0.0.0.0", port=8000)
