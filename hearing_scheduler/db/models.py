"""
SQLAlchemy Models for Database
==============================

Schema for the hearing scheduling engine:
- Cases (owned by the CRUD layer; we only maintain next_hearing)
- Hearings with local scheduling fields and derived UTC instants
- Activity log (audit trail for overrides and hearing mutations)

Supports both PostgreSQL and SQLite via SQLAlchemy. Instants are stored as
naive UTC datetimes; use clock.as_utc() when reading them back.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Text, Integer, Date, DateTime, Enum, ForeignKey,
    Index, JSON, CheckConstraint
)
from sqlalchemy.orm import relationship, declarative_base

# Use JSON for cross-database compatibility (works with both PostgreSQL and SQLite)
JSONB = JSON

Base = declarative_base()


def generate_uuid():
    return str(uuid.uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class CaseStatus(str, enum.Enum):
    """Case lifecycle status"""
    ACTIVE = "active"
    PENDING = "pending"
    CLOSED = "closed"
    WON = "won"
    LOST = "lost"


class HearingStatus(str, enum.Enum):
    """
    Hearing lifecycle.

    scheduled -> completed | adjourned | cancelled. Only SCHEDULED hearings
    take part in conflict detection and next-hearing derivation.
    """
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    ADJOURNED = "adjourned"
    CANCELLED = "cancelled"


class HearingType(str, enum.Enum):
    """Kind of hearing (descriptive only)"""
    FIRST_HEARING = "first_hearing"
    INTERIM_HEARING = "interim_hearing"
    FINAL_HEARING = "final_hearing"
    EVIDENCE_HEARING = "evidence_hearing"
    ARGUMENT_HEARING = "argument_hearing"
    JUDGMENT_HEARING = "judgment_hearing"
    OTHER = "other"


class ActivityType(str, enum.Enum):
    """Activity log entry types"""
    HEARING_CREATED = "hearing_created"
    HEARING_UPDATED = "hearing_updated"
    HEARING_DELETED = "hearing_deleted"
    HEARING_CONFLICT_OVERRIDE = "hearing_conflict_override"
    NEXT_HEARING_RECOMPUTED = "next_hearing_recomputed"


# =============================================================================
# CASE MANAGEMENT MODELS
# =============================================================================

class Case(Base):
    """Legal case. next_hearing is derived - only propagation.py writes it."""
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner = Column(String(36), nullable=False, index=True)
    case_number = Column(String(100), nullable=False)
    client_name = Column(String(255), nullable=False)
    court_name = Column(String(255), nullable=True)
    status = Column(Enum(CaseStatus), default=CaseStatus.ACTIVE, nullable=False)

    next_hearing = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    hearings = relationship("Hearing", back_populates="case", cascade="all, delete-orphan")


class Hearing(Base):
    """Court hearing on an attorney's (owner's) calendar"""
    __tablename__ = "hearings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    case_id = Column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), nullable=False)
    owner = Column(String(36), nullable=False)

    # Local scheduling fields (source of truth)
    hearing_date = Column(Date, nullable=False)
    hearing_time = Column(String(16), nullable=False)
    timezone = Column(String(64), nullable=False)
    duration = Column(Integer, nullable=False, default=60)

    # Derived instants (naive UTC)
    start_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)

    status = Column(Enum(HearingStatus), default=HearingStatus.SCHEDULED, nullable=False)
    resource_scope = Column(JSONB, default=dict)

    # Follow-up hint (alternate source for Case.next_hearing)
    next_hearing_date = Column(Date, nullable=True)
    next_hearing_time = Column(String(16), nullable=True)

    # {allowed, reason, overriddenBy, overriddenAt, conflictingHearings}
    conflict_override = Column(JSONB, nullable=True)

    # Descriptive details
    court_name = Column(String(255), nullable=True)
    judge_name = Column(String(255), nullable=True)
    hearing_type = Column(Enum(HearingType), default=HearingType.INTERIM_HEARING, nullable=False)
    purpose = Column(Text, nullable=True)
    court_instructions = Column(Text, nullable=True)
    proceedings = Column(Text, nullable=True)
    adjournment_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("start_at < end_at", name="ck_hearing_interval"),
        CheckConstraint("duration > 0", name="ck_hearing_duration"),
        Index("ix_hearing_owner_status_start", "owner", "status", "start_at"),
        Index("ix_hearing_case_owner", "case_id", "owner"),
    )

    # Relationships
    case = relationship("Case", back_populates="hearings")


# =============================================================================
# ACTIVITY LOG
# =============================================================================

class Activity(Base):
    """Activity / audit trail entry"""
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner = Column(String(36), nullable=False)
    type = Column(Enum(ActivityType), nullable=False)
    message = Column(Text, nullable=False)
    entity_type = Column(String(32), nullable=False)  # hearing/case
    entity_id = Column(String(36), nullable=True)
    extra_data = Column(JSONB, default=dict)  # Note: 'metadata' is reserved by SQLAlchemy
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_activity_owner_created", "owner", "created_at"),
        Index("ix_activity_owner_type", "owner", "type", "created_at"),
    )
