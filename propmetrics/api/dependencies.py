"""
FastAPI dependencies for storage and metrics services.
"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from propmetrics.config import get_settings
from propmetrics.db.database import get_db
from propmetrics.db.models import Property
from propmetrics.db.repository import PropertyRepository
from propmetrics.services.metrics import MetricsService


def get_repository(db: Session = Depends(get_db)) -> PropertyRepository:
    return PropertyRepository(db, get_settings())


def get_metrics_service(
    request: Request,
    repository: PropertyRepository = Depends(get_repository),
) -> MetricsService:
    """Metrics service bound to the application's cache instance."""
    cache = getattr(request.app.state, "metrics_cache", None)
    return MetricsService(repository, cache=cache, settings=repository.settings)


def get_property_or_404(
    property_id: str,
    repository: PropertyRepository = Depends(get_repository),
) -> Property:
    prop = repository.get_property(property_id)
    if not prop:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop
