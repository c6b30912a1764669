from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from notifier.api.router import api_router
from notifier.config import get_settings
from notifier.core.logging import setup_logging
from notifier.core.scheduler import start_scheduler, stop_scheduler
from notifier.services.push_gateway import get_push_gateway, reset_push_gateway

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Startup
    setup_logging()
    await start_scheduler()
    yield
    # Shutdown
    await stop_scheduler()
    await get_push_gateway().aclose()
    reset_push_gateway()


app = FastAPI(
    title="Notifier",
    description="Push notification scheduler",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

# Include API routes
app.include_router(api_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers."""
    return {"status": "healthy"}
