"""
Pydantic Schemas for Hearing Scheduler
======================================

Request/response models for the HTTP boundary. Field names are snake_case in
Python and camelCase on the wire (hearingDate, startAt, conflictReason, ...).

Dates arrive as strings and are parsed by the time resolver, so a bad date is
a VALIDATION_ERROR with the same shape whether it came from HTTP or from a
direct service call.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .clock import as_utc
from .conflicts import ConflictRecord
from .db.models import Case, CaseStatus, Hearing, HearingStatus, HearingType


class CamelModel(BaseModel):
    """Base model: camelCase aliases, accepts either spelling on input"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# =============================================================================
# INPUT SCHEMAS - Hearings
# =============================================================================

class OverrideRequest(CamelModel):
    """Explicit decision to schedule despite conflicts"""
    reason: Optional[str] = Field(None, description="Why the conflict is acceptable (required)")


class HearingCreateRequest(CamelModel):
    """Request to schedule a hearing"""
    case_id: str = Field(..., description="Owning case")
    hearing_date: str = Field(..., description="Calendar date, YYYY-MM-DD")
    hearing_time: Optional[str] = Field(None, description="HH:MM (24h) or h:MM AM/PM")
    timezone: Optional[str] = Field(None, description="IANA timezone, e.g. Asia/Kolkata")
    duration: Optional[int] = Field(None, description="Minutes (default 60)")
    status: Optional[HearingStatus] = Field(None, description="Default: scheduled")
    resource_scope: Optional[Dict[str, Any]] = Field(None, description="Opaque resource attributes (court, judge, ...)")
    next_hearing_date: Optional[str] = Field(None, description="Follow-up date hint")
    next_hearing_time: Optional[str] = Field(None, description="Follow-up time hint")
    court_name: Optional[str] = None
    judge_name: Optional[str] = None
    hearing_type: Optional[HearingType] = None
    purpose: Optional[str] = None
    court_instructions: Optional[str] = None
    proceedings: Optional[str] = None
    adjournment_reason: Optional[str] = None
    notes: Optional[str] = None
    override: Optional[OverrideRequest] = Field(None, description="Schedule despite conflicts")

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "caseId": "c6d5b8c0-1f0e-4c8a-9d0e-2f6f0a1b2c3d",
                "hearingDate": "2025-06-01",
                "hearingTime": "10:30",
                "timezone": "Asia/Kolkata",
                "duration": 60,
                "resourceScope": {"court": "Bombay High Court", "judge": "Justice Rao"},
                "override": {"reason": "Emergency hearing"},
            }
        }

    def draft(self) -> Dict[str, Any]:
        """Fields explicitly supplied, minus the override"""
        return self.model_dump(exclude_unset=True, exclude={"override"})


class HearingUpdateRequest(CamelModel):
    """Partial update of a hearing; only supplied fields change"""
    hearing_date: Optional[str] = None
    hearing_time: Optional[str] = None
    timezone: Optional[str] = None
    duration: Optional[int] = None
    status: Optional[HearingStatus] = None
    resource_scope: Optional[Dict[str, Any]] = None
    next_hearing_date: Optional[str] = None
    next_hearing_time: Optional[str] = None
    court_name: Optional[str] = None
    judge_name: Optional[str] = None
    hearing_type: Optional[HearingType] = None
    purpose: Optional[str] = None
    court_instructions: Optional[str] = None
    proceedings: Optional[str] = None
    adjournment_reason: Optional[str] = None
    notes: Optional[str] = None
    override: Optional[OverrideRequest] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"override"})


class CheckConflictRequest(CamelModel):
    """
    Conflict check. Either absolute instants (start_at/end_at) or the local
    fields (hearing_date + hearing_time + timezone + duration).
    """
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    hearing_date: Optional[str] = None
    hearing_time: Optional[str] = None
    timezone: Optional[str] = None
    duration: Optional[int] = None
    resource_scope: Optional[Dict[str, Any]] = None
    exclude_hearing_id: Optional[str] = None


# =============================================================================
# INPUT SCHEMAS - Cases (collaborator surface)
# =============================================================================

class CaseCreateRequest(CamelModel):
    """Minimal case record the engine can attach hearings to"""
    case_number: str = Field(..., min_length=1, max_length=100)
    client_name: str = Field(..., min_length=1, max_length=255)
    court_name: Optional[str] = None
    status: Optional[CaseStatus] = None


# =============================================================================
# OUTPUT SCHEMAS
# =============================================================================

class ConflictRecordOut(CamelModel):
    """One colliding hearing, enough for a caller to render a resolution UI"""
    hearing_id: str
    case_number: Optional[str] = None
    start_at: str
    end_at: str
    conflict_reason: str

    @classmethod
    def from_record(cls, record: ConflictRecord) -> "ConflictRecordOut":
        return cls(**record.to_dict())


class CheckConflictResponse(CamelModel):
    has_conflict: bool
    conflicts: List[ConflictRecordOut] = []


class CaseSummary(CamelModel):
    case_number: Optional[str] = None
    client_name: Optional[str] = None


class HearingResponse(CamelModel):
    """Hearing as returned by the API"""
    id: str
    case_id: str
    owner: str
    hearing_date: date
    hearing_time: str
    timezone: str
    duration: int
    start_at: datetime
    end_at: datetime
    status: HearingStatus
    resource_scope: Dict[str, Any] = {}
    next_hearing_date: Optional[date] = None
    next_hearing_time: Optional[str] = None
    conflict_override: Optional[Dict[str, Any]] = None
    court_name: Optional[str] = None
    judge_name: Optional[str] = None
    hearing_type: Optional[HearingType] = None
    purpose: Optional[str] = None
    court_instructions: Optional[str] = None
    proceedings: Optional[str] = None
    adjournment_reason: Optional[str] = None
    notes: Optional[str] = None
    case: Optional[CaseSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, hearing: Hearing, case: Optional[Case] = None) -> "HearingResponse":
        summary = None
        if case is not None:
            summary = CaseSummary(case_number=case.case_number, client_name=case.client_name)
        return cls(
            id=hearing.id,
            case_id=hearing.case_id,
            owner=hearing.owner,
            hearing_date=hearing.hearing_date,
            hearing_time=hearing.hearing_time,
            timezone=hearing.timezone,
            duration=hearing.duration,
            start_at=as_utc(hearing.start_at),
            end_at=as_utc(hearing.end_at),
            status=hearing.status,
            resource_scope=hearing.resource_scope or {},
            next_hearing_date=hearing.next_hearing_date,
            next_hearing_time=hearing.next_hearing_time,
            conflict_override=hearing.conflict_override,
            court_name=hearing.court_name,
            judge_name=hearing.judge_name,
            hearing_type=hearing.hearing_type,
            purpose=hearing.purpose,
            court_instructions=hearing.court_instructions,
            proceedings=hearing.proceedings,
            adjournment_reason=hearing.adjournment_reason,
            notes=hearing.notes,
            case=summary,
            created_at=as_utc(hearing.created_at),
            updated_at=as_utc(hearing.updated_at),
        )


class CaseResponse(CamelModel):
    id: str
    owner: str
    case_number: str
    client_name: str
    court_name: Optional[str] = None
    status: CaseStatus
    next_hearing: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, case: Case) -> "CaseResponse":
        return cls(
            id=case.id,
            owner=case.owner,
            case_number=case.case_number,
            client_name=case.client_name,
            court_name=case.court_name,
            status=case.status,
            next_hearing=as_utc(case.next_hearing),
            created_at=as_utc(case.created_at),
            updated_at=as_utc(case.updated_at),
        )


class NextHearingResponse(CamelModel):
    case_id: str
    next_hearing: Optional[datetime] = None


class DeleteResponse(CamelModel):
    ok: bool = True
    id: str


class HealthResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(..., description="Current timestamp")


class ErrorResponse(BaseModel):
    """Structured error response"""
    error: str = Field(..., description="VALIDATION_ERROR | CONFLICT | INTERNAL_ERROR | NOT_FOUND | FORBIDDEN")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = None
    conflicts: Optional[List[ConflictRecordOut]] = None
