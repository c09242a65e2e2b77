"""
Storage for property records and metrics history.
"""

from propmetrics.db.database import engine, SessionLocal, get_db, init_db
from propmetrics.db.models import Base
from propmetrics.db.repository import PropertyRepository

__all__ = ["engine", "SessionLocal", "get_db", "init_db", "Base", "PropertyRepository"]
