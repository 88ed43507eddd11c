from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.shared.core.config import settings
from app.shared.core.logging import setup_logging
from app.shared.middleware.correlation import CorrelationIdMiddleware
from app.shared.utils.http_client import startup_http_client, shutdown_http_client
from app.shared.utils.exceptions import (
    ConcurrentModificationError,
    EntityNotFoundError,
    InvalidStateError,
    SequenceValidationError,
)
from app.modules.campaign_outreach.api import router as campaign_outreach_router
from app.modules.campaign_outreach.services.scheduler_service import scheduler_loop

setup_logging()
logger = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await startup_http_client()
    if settings.SCHEDULER_ENABLED:
        scheduler_loop.start()
    else:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")
    yield
    await scheduler_loop.stop()
    await shutdown_http_client()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation IDs for log tracing (X-Request-ID)
app.add_middleware(CorrelationIdMiddleware)


# ============================================
# DOMAIN ERROR -> HTTP STATUS
# ============================================

@app.exception_handler(EntityNotFoundError)
async def not_found_handler(request: Request, exc: EntityNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(SequenceValidationError)
async def sequence_validation_handler(request: Request, exc: SequenceValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": exc.message, "missing_steps": exc.missing_steps}
    )


@app.exception_handler(ConcurrentModificationError)
async def concurrent_modification_handler(request: Request, exc: ConcurrentModificationError):
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# Campaigns, approvals, PhantomBuster webhook / CSV, operator tooling
app.include_router(campaign_outreach_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    return {
        "message": f"{settings.PROJECT_NAME} API is running",
        "scheduler": scheduler_loop.get_status(),
    }
