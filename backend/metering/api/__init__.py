"""API route registration."""

from fastapi import APIRouter

from metering.api.integrations import router as integrations_router
from metering.billing.api import router as billing_router
from metering.config import get_settings

api_router = APIRouter(prefix=get_settings().API_V1_PREFIX)
api_router.include_router(billing_router)
api_router.include_router(integrations_router)
