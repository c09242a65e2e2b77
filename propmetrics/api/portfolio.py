"""
Portfolio API endpoints.
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from propmetrics.api.dependencies import get_metrics_service
from propmetrics.api.schemas import as_float
from propmetrics.calculations.errors import InvalidInputError
from propmetrics.services.metrics import MetricsService

router = APIRouter()


class PropertyLine(BaseModel):
    property_id: str
    arv: float
    cash_flow: float
    cap_rate: Optional[float]
    cash_on_cash_return: Optional[float]
    dscr: Optional[float]


class PortfolioSummaryResponse(BaseModel):
    property_count: int
    unit_count: int
    total_arv: float
    total_cash_flow: float
    total_equity: float
    weighted_cap_rate: Optional[float]
    properties: List[PropertyLine]
    errors: Dict[str, Dict[str, Optional[str]]]
    warnings: List[str]


@router.get("/summary", response_model=PortfolioSummaryResponse)
async def portfolio_summary(service: MetricsService = Depends(get_metrics_service)):
    """Roll up metrics across all properties; invalid properties are listed, not fatal."""
    summary = service.portfolio_summary()

    return PortfolioSummaryResponse(
        property_count=summary.property_count,
        unit_count=summary.unit_count,
        total_arv=float(summary.total_arv),
        total_cash_flow=float(summary.total_cash_flow),
        total_equity=float(summary.total_equity),
        weighted_cap_rate=as_float(summary.weighted_cap_rate),
        properties=[
            PropertyLine(
                property_id=property_id,
                arv=float(result.arv),
                cash_flow=float(result.cash_flow),
                cap_rate=as_float(result.cap_rate),
                cash_on_cash_return=as_float(result.cash_on_cash_return),
                dscr=as_float(result.dscr),
            )
            for property_id, result in summary.results.items()
        ],
        errors={
            property_id: {
                "field": error.field if isinstance(error, InvalidInputError) else None,
                "detail": str(error),
            }
            for property_id, error in summary.errors.items()
        },
        warnings=[warning.message for warning in summary.warnings],
    )
