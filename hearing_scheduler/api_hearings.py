"""
Hearing & Case API Endpoints
============================

FastAPI router for hearing scheduling (mounted under /api/v1).

Hearings:
- POST   /hearings/check-conflict   - Check an interval for conflicts
- POST   /hearings                  - Schedule a hearing (409 on conflict)
- PUT    /hearings/{hearing_id}     - Update a hearing (409 on conflict)
- DELETE /hearings/{hearing_id}     - Delete a hearing
- GET    /hearings                  - All hearings of the caller
- GET    /hearings/today            - Today's hearings
- GET    /hearings/case/{case_id}   - Hearings of one case
- GET    /hearings/{hearing_id}     - One hearing

Cases (minimal surface the engine needs):
- POST /cases
- GET  /cases/{case_id}
- POST /cases/{case_id}/next-hearing/recompute

Endpoints are plain `def` so FastAPI runs them in its threadpool: the
scheduling lock and the database calls block.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .auth import AuthContext, get_auth_context
from .clock import Clock, get_clock
from .db.models import Case, CaseStatus
from .db.session import get_db
from .errors import InternalError, NotFoundError, ValidationError
from .propagation import run_recompute
from .schemas import (
    CaseCreateRequest,
    CaseResponse,
    CheckConflictRequest,
    CheckConflictResponse,
    ConflictRecordOut,
    DeleteResponse,
    ErrorResponse,
    HearingCreateRequest,
    HearingResponse,
    HearingUpdateRequest,
    NextHearingResponse,
)
from .service import HearingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["hearings"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    404: {"model": ErrorResponse, "description": "Not found"},
    500: {"model": ErrorResponse, "description": "Internal error"},
}


def get_hearing_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> HearingService:
    return HearingService(db, clock=clock)


def _with_cases(service: HearingService, hearings) -> List[HearingResponse]:
    cases = service.cases_by_id(hearings)
    return [HearingResponse.from_model(h, cases.get(h.case_id)) for h in hearings]


# =============================================================================
# HEARINGS
# =============================================================================

@router.post(
    "/hearings/check-conflict",
    response_model=CheckConflictResponse,
    responses=ERROR_RESPONSES,
)
def check_hearing_conflict(
    request: CheckConflictRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: HearingService = Depends(get_hearing_service),
):
    """
    Check a proposed interval against the caller's scheduled hearings.

    Accepts absolute instants (startAt/endAt) or local fields
    (hearingDate, hearingTime, timezone, duration).
    """
    if request.start_at is not None and request.end_at is not None:
        start_at, end_at = request.start_at, request.end_at
    elif request.hearing_date:
        start_at, end_at = service.resolve_interval(
            request.hearing_date, request.hearing_time, request.timezone, request.duration
        )
    else:
        raise ValidationError("Provide startAt and endAt, or hearingDate")

    result = service.check_conflict(
        auth.owner_id,
        start_at,
        end_at,
        resource_scope=request.resource_scope,
        exclude_hearing_id=request.exclude_hearing_id,
    )
    return CheckConflictResponse(
        has_conflict=result["hasConflict"],
        conflicts=[ConflictRecordOut.from_record(c) for c in result["conflicts"]],
    )


@router.post(
    "/hearings",
    response_model=HearingResponse,
    status_code=201,
    responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse, "description": "Conflict"}},
)
def create_hearing(
    request: HearingCreateRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: HearingService = Depends(get_hearing_service),
):
    """Schedule a hearing. Conflicts require `override: {reason}`."""
    hearing = service.create_hearing(auth.owner_id, request.draft(), override=request.override)
    return _with_cases(service, [hearing])[0]


@router.get("/hearings", response_model=List[HearingResponse])
def list_hearings(
    auth: AuthContext = Depends(get_auth_context),
    service: HearingService = Depends(get_hearing_service),
):
    return _with_cases(service, service.list_hearings(auth.owner_id))


@router.get("/hearings/today", response_model=List[HearingResponse])
def list_today_hearings(
    tz: Optional[str] = Query(None, description="IANA timezone (default: server default)"),
    auth: AuthContext = Depends(get_auth_context),
    service: HearingService = Depends(get_hearing_service),
):
    return _with_cases(service, service.list_today(auth.owner_id, tz))


@router.get("/hearings/case/{case_id}", response_model=List[HearingResponse])
def list_case_hearings(
    case_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: HearingService = Depends(get_hearing_service),
):
    return _with_cases(service, service.list_case_hearings(auth.owner_id, case_id))


@router.get("/hearings/{hearing_id}", response_model=HearingResponse, responses=ERROR_RESPONSES)
def get_hearing(
    hearing_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: HearingService = Depends(get_hearing_service),
):
    hearing = service.get_hearing(auth.owner_id, hearing_id)
    return _with_cases(service, [hearing])[0]


@router.put(
    "/hearings/{hearing_id}",
    response_model=HearingResponse,
    responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse, "description": "Conflict"}},
)
def update_hearing(
    hearing_id: str,
    request: HearingUpdateRequest,
    auth: AuthContext = Depends(get_auth_context),
    service: HearingService = Depends(get_hearing_service),
):
    hearing = service.update_hearing(
        auth.owner_id, hearing_id, request.changes(), override=request.override
    )
    return _with_cases(service, [hearing])[0]


@router.delete("/hearings/{hearing_id}", response_model=DeleteResponse, responses=ERROR_RESPONSES)
def delete_hearing(
    hearing_id: str,
    auth: AuthContext = Depends(get_auth_context),
    service: HearingService = Depends(get_hearing_service),
):
    hearing = service.delete_hearing(auth.owner_id, hearing_id)
    return DeleteResponse(ok=True, id=hearing.id)


# =============================================================================
# CASES
# =============================================================================

@router.post("/cases", response_model=CaseResponse, status_code=201, tags=["cases"])
def create_case(
    request: CaseCreateRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    case = Case(
        owner=auth.owner_id,
        case_number=request.case_number.strip(),
        client_name=request.client_name.strip(),
        court_name=request.court_name,
        status=request.status or CaseStatus.ACTIVE,
    )
    try:
        db.add(case)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Create case failed: {e}")
        raise InternalError("Failed to create case")
    return CaseResponse.from_model(case)


@router.get("/cases/{case_id}", response_model=CaseResponse, responses=ERROR_RESPONSES, tags=["cases"])
def get_case(
    case_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: Session = Depends(get_db),
):
    case = db.query(Case).filter(Case.id == case_id, Case.owner == auth.owner_id).first()
    if not case:
        raise NotFoundError("Case not found")
    return CaseResponse.from_model(case)


@router.post(
    "/cases/{case_id}/next-hearing/recompute",
    response_model=NextHearingResponse,
    responses=ERROR_RESPONSES,
    tags=["cases"],
)
def recompute_case_next_hearing(
    case_id: str,
    auth: AuthContext = Depends(get_auth_context),
    clock: Clock = Depends(get_clock),
):
    """Force a synchronous recomputation of the case's next hearing."""
    next_hearing = run_recompute(case_id, auth.owner_id, clock)
    return NextHearingResponse(case_id=case_id, next_hearing=next_hearing)
