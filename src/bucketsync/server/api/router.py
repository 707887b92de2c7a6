"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from bucketsync.server.api import health, storage

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(storage.router)
