"""API v1 router aggregation."""

from fastapi import APIRouter

from unjobs.api.v1.etl import router as etl_router

router = APIRouter(prefix="/api/v1")

router.include_router(etl_router)
