from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from gestionmatos.db import get_session
from gestionmatos.deps import require_user
from gestionmatos.models import User
from gestionmatos.schemas import (
    CheckinRequest,
    CheckoutRequest,
    DailyMovementCount,
    MovementListResponse,
    MovementRead,
    MovementResult,
    MovementType,
)
from gestionmatos.services import ledger, workflow

router = APIRouter(prefix="/movements", tags=["movements"])


@router.get("", response_model=MovementListResponse)
def list_movements(
    material_id: Optional[int] = Query(None, ge=1, description="filter by material"),
    user_id: Optional[int] = Query(None, ge=1, description="filter by borrower"),
    type: Optional[MovementType] = Query(None, description="out / in"),
    tz: Optional[str] = Query(None, description="zone for start/end without offset, e.g. Europe/Paris"),
    start: Optional[str] = Query(None, description="e.g. 2026-01-12 or 2026-01-12T08:30:00"),
    end: Optional[str] = Query(None, description="inclusive date, or exclusive datetime"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    start_dt, end_dt = ledger.parse_range(start, end, tz)
    items, total = ledger.list_movements(
        session,
        material_id=material_id,
        user_id=user_id,
        movement_type=type,
        start_dt=start_dt,
        end_dt=end_dt,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "total": total, "limit": limit, "offset": offset}


@router.post("/checkout", response_model=MovementResult, status_code=201)
def checkout(
    data: CheckoutRequest,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    mv = workflow.checkout(
        session,
        material_id=data.material_id,
        user_id=data.user_id,
        acting_user_id=user.id,
        expected_return_date=data.expected_return_date,
        note=data.note,
    )
    return {"message": "Checkout recorded", "movement_id": mv.id}


@router.post("/checkin", response_model=MovementResult, status_code=201)
def checkin(
    data: CheckinRequest,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    mv = workflow.checkin(
        session,
        material_id=data.material_id,
        user_id=data.user_id,
        acting_user_id=user.id,
        note=data.note,
    )
    return {"message": "Return recorded", "movement_id": mv.id}


@router.get("/material/{material_id}/history", response_model=list[MovementRead])
def material_history(
    material_id: int,
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    return ledger.material_history(session, material_id)


@router.get("/user/{user_id}/history", response_model=list[MovementRead])
def user_history(
    user_id: int,
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    return ledger.user_history(session, user_id)


@router.get("/stats/overview", response_model=list[DailyMovementCount])
def movement_stats(
    start: Optional[str] = Query(None, description="first day, e.g. 2026-01-01"),
    end: Optional[str] = Query(None, description="last day (inclusive)"),
    tz: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    start_dt, end_dt = ledger.parse_range(start, end, tz)
    return ledger.daily_stats(session, start_dt, end_dt)
