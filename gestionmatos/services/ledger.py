import re
from datetime import datetime, date, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func
from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from gestionmatos.errors import ValidationError
from gestionmatos.models import Material, Movement, User
from gestionmatos.schemas import MovementRead, MovementType

Borrower = aliased(User)
Processor = aliased(User)

DAILY_STATS_LIMIT = 30
DAY_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def get_zone(name: Optional[str]) -> Optional[ZoneInfo]:
    name = (name or "").strip()
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown time zone: {name}")


def to_utc_bound(value: str, zone: Optional[ZoneInfo], *, end: bool) -> datetime:
    """Turn a ``start``/``end`` query value into an aware UTC instant.

    A bare ``YYYY-MM-DD`` stands for the whole local day, so as an ``end`` it
    means the next midnight (ranges are half-open). Values without an offset
    are read in ``zone``, or UTC.
    """
    value = value.strip()
    local = zone or timezone.utc

    if DAY_RE.fullmatch(value):
        try:
            day = date.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"Not a calendar date: {value}")
        if end:
            day += timedelta(days=1)
        return datetime.combine(day, time.min, tzinfo=local).astimezone(timezone.utc)

    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Expected YYYY-MM-DD or an ISO 8601 datetime, got {value!r}")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=local)
    return moment.astimezone(timezone.utc)


def parse_range(
    start: Optional[str], end: Optional[str], tz: Optional[str]
) -> tuple[Optional[datetime], Optional[datetime]]:
    zone = get_zone(tz)
    start_dt = to_utc_bound(start, zone, end=False) if start else None
    end_dt = to_utc_bound(end, zone, end=True) if end else None
    if start_dt is not None and end_dt is not None and start_dt >= end_dt:
        raise ValidationError("start must be before end")
    return start_dt, end_dt


def _joined():
    return (
        select(
            Movement,
            Material.name,
            Material.qr_code,
            Borrower.username,
            Processor.username,
        )
        .join(Material, Material.id == Movement.material_id, isouter=True)
        .join(Borrower, Borrower.id == Movement.user_id, isouter=True)
        .join(Processor, Processor.id == Movement.processed_by, isouter=True)
    )


def _to_read(row) -> MovementRead:
    mv, material_name, material_qr, user_username, processed_by_username = row
    return MovementRead(
        **mv.model_dump(),
        material_name=material_name,
        material_qr=material_qr,
        user_username=user_username,
        processed_by_username=processed_by_username,
    )


def list_movements(
    session: Session,
    *,
    material_id: Optional[int] = None,
    user_id: Optional[int] = None,
    movement_type: Optional[MovementType] = None,
    start_dt: Optional[datetime] = None,
    end_dt: Optional[datetime] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[MovementRead], int]:
    conds = []
    if material_id is not None:
        conds.append(Movement.material_id == material_id)
    if user_id is not None:
        conds.append(Movement.user_id == user_id)
    if movement_type is not None:
        conds.append(Movement.movement_type == movement_type.value)
    if start_dt is not None:
        conds.append(Movement.movement_date >= start_dt)
    if end_dt is not None:
        conds.append(Movement.movement_date < end_dt)

    count_stmt = select(func.count()).select_from(Movement)
    stmt = _joined()
    if conds:
        count_stmt = count_stmt.where(*conds)
        stmt = stmt.where(*conds)

    total = session.exec(count_stmt).one()
    stmt = stmt.order_by(Movement.movement_date.desc(), Movement.id.desc()).offset(offset).limit(limit)
    return [_to_read(r) for r in session.exec(stmt).all()], total


def material_history(session: Session, material_id: int) -> list[MovementRead]:
    stmt = (
        _joined()
        .where(Movement.material_id == material_id)
        .order_by(Movement.movement_date.desc(), Movement.id.desc())
    )
    return [_to_read(r) for r in session.exec(stmt).all()]


def user_history(session: Session, user_id: int) -> list[MovementRead]:
    stmt = (
        _joined()
        .where(Movement.user_id == user_id)
        .order_by(Movement.movement_date.desc(), Movement.id.desc())
    )
    return [_to_read(r) for r in session.exec(stmt).all()]


def daily_stats(
    session: Session,
    start_dt: Optional[datetime] = None,
    end_dt: Optional[datetime] = None,
) -> list[dict]:
    day = func.date(Movement.movement_date).label("day")
    stmt = select(day, Movement.movement_type, func.count().label("count"))
    if start_dt is not None:
        stmt = stmt.where(Movement.movement_date >= start_dt)
    if end_dt is not None:
        stmt = stmt.where(Movement.movement_date < end_dt)
    stmt = (
        stmt.group_by(day, Movement.movement_type)
        .order_by(day.desc(), Movement.movement_type.asc())
        .limit(DAILY_STATS_LIMIT)
    )

    out = []
    for d, movement_type, count in session.exec(stmt).all():
        # sqlite hands DATE() back as text
        if isinstance(d, str):
            d = date.fromisoformat(d)
        out.append({"date": d, "movement_type": movement_type, "count": count})
    return out
