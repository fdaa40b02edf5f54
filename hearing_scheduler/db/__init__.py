"""
Database Package - PostgreSQL/SQLite with SQLAlchemy
====================================================

Persistence for cases, hearings and the activity log.
"""

from .models import (
    Base,
    Case, Hearing, Activity,
    CaseStatus, HearingStatus, HearingType, ActivityType,
)
from .session import get_db, get_db_session, init_db, get_engine, reset_engine

__all__ = [
    # Base
    "Base",
    # Models
    "Case", "Hearing", "Activity",
    # Enums
    "CaseStatus", "HearingStatus", "HearingType", "ActivityType",
    # Session
    "get_db", "get_db_session", "init_db", "get_engine", "reset_engine",
]
