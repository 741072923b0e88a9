"""API v1 router aggregator."""

from fastapi import APIRouter

from app.api.v1 import provisioning

api_router = APIRouter(tags=["API v1"])

api_router.include_router(provisioning.router, prefix="/provisioning", tags=["Provisioning"])
