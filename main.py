import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from linktrack_app.config import settings
from linktrack_app.database.connection import engine, Base
from linktrack_app.api.v1 import analytics, links, redirect
from linktrack_app.exceptions import StoreUnavailableError
from linktrack_app.dependencies import get_dispatcher
from linktrack_app.hit_processor.hit_worker import build_worker
from linktrack_app.rate_limit import limiter, rate_limit_exceeded_handler

# Import models to ensure they're registered with Base
from linktrack_app.models import Link, ClickEvent  # noqa: F401

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create database tables
    Base.metadata.create_all(bind=engine)

    worker = None
    worker_task = None
    if settings.run_embedded_worker:
        worker = build_worker()
        worker_task = asyncio.create_task(worker.start())
        logger.info("Embedded enrichment worker started")

    yield

    # Hits handed to a broker publisher must not be lost on shutdown
    await asyncio.to_thread(get_dispatcher().flush)

    if worker is not None:
        worker.stop()
        worker_task.cancel()
        await asyncio.gather(worker_task, return_exceptions=True)
        logger.info("Embedded enrichment worker stopped")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="URL shortener with atomic click counting and visit analytics",
    debug=settings.debug,
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/")
def read_root():
    """Root endpoint with API information"""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "environment": settings.environment}


######## Include routers
app.include_router(links.router, prefix="/api/v1")
app.include_router(analytics.router, prefix="/api/v1")
# Catch-all short code route goes last
app.include_router(redirect.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
