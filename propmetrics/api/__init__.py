"""
API routes for property metrics.
"""

from fastapi import APIRouter

from propmetrics.api import properties, calculations, portfolio

router = APIRouter()

# Include sub-routers
router.include_router(properties.router, prefix="/properties", tags=["properties"])
router.include_router(calculations.router, prefix="/calculate", tags=["calculations"])
router.include_router(portfolio.router, prefix="/portfolio", tags=["portfolio"])
