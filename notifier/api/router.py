from fastapi import APIRouter

from notifier.api.jobs import router as jobs_router
from notifier.api.notifications import router as notifications_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(jobs_router, prefix="/api", tags=["jobs"])
api_router.include_router(notifications_router, prefix="/api", tags=["notifications"])
