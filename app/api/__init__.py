"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import dialectic

router = APIRouter()

# Stage generation and stage document routes
router.include_router(dialectic.router, prefix="/dialectic", tags=["dialectic"])
