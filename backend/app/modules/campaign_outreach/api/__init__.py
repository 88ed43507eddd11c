"""
Campaign Outreach Module - API Router
Combines all routes from this module for easy registration in main.py
"""
from fastapi import APIRouter
from app.modules.campaign_outreach.api import campaign_endpoints
from app.modules.campaign_outreach.api import approval_endpoints
from app.modules.campaign_outreach.api import webhook_endpoints
from app.modules.campaign_outreach.api import operations_endpoints

# Create module router
router = APIRouter()

router.include_router(
    campaign_endpoints.router,
    prefix="/campaigns",
    tags=["Campaigns"]
)

router.include_router(
    approval_endpoints.router,
    prefix="/approvals",
    tags=["Approval Queue"]
)

# PhantomBuster callbacks and the message CSV hand-off
router.include_router(
    webhook_endpoints.router,
    tags=["PhantomBuster"]
)

router.include_router(
    operations_endpoints.router,
    tags=["Operations"]
)
