"""
Checkout / checkin workflow.

Material status only moves between ``available`` and ``borrowed`` here, and
always together with the ledger row that justifies it:

    checkout: available --(out movement)--> borrowed
    checkin:  borrowed  --(in movement, out movement stamped)--> available

Both operations run in one ``transaction(session)``. Preconditions are
checked with conditional UPDATEs inside that transaction, so two requests
racing on the same row are serialized by the database: the loser matches
zero rows and fails instead of double-booking.
"""
import logging
from datetime import date
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session, select

from gestionmatos.db import transaction
from gestionmatos.errors import InvalidStateError, NoOpenCheckoutError, NotFoundError
from gestionmatos.models import Material, Movement, User, utcnow
from gestionmatos.schemas import MaterialStatus, MovementType

logger = logging.getLogger(__name__)


def _clean_note(note: Optional[str]) -> Optional[str]:
    note = (note or "").strip()
    return note or None


def checkout(
    session: Session,
    material_id: int,
    user_id: int,
    acting_user_id: int,
    expected_return_date: Optional[date] = None,
    note: Optional[str] = None,
) -> Movement:
    """Lend an available material to ``user_id``; returns the ``out`` movement."""
    with transaction(session):
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")

        now = utcnow()
        claimed = session.exec(
            update(Material)
            .where(Material.id == material_id, Material.status == MaterialStatus.AVAILABLE.value)
            .values(status=MaterialStatus.BORROWED.value, updated_at=now)
        )
        if claimed.rowcount != 1:
            logger.warning("checkout refused: material=%s not available (user=%s)", material_id, user_id)
            raise InvalidStateError()

        mv = Movement(
            material_id=material_id,
            user_id=user_id,
            movement_type=MovementType.OUT.value,
            movement_date=now,
            expected_return_date=expected_return_date,
            notes=_clean_note(note),
            processed_by=acting_user_id,
        )
        session.add(mv)
        session.flush()

    session.refresh(mv)
    logger.info("checkout: material=%s user=%s movement=%s by=%s", material_id, user_id, mv.id, acting_user_id)
    return mv


def find_open_checkout(session: Session, material_id: int, user_id: int) -> Optional[Movement]:
    stmt = (
        select(Movement)
        .where(
            Movement.material_id == material_id,
            Movement.user_id == user_id,
            Movement.movement_type == MovementType.OUT.value,
            Movement.actual_return_date.is_(None),
        )
        .order_by(Movement.movement_date.desc(), Movement.id.desc())
        .limit(1)
    )
    return session.exec(stmt).first()


def checkin(
    session: Session,
    material_id: int,
    user_id: int,
    acting_user_id: int,
    note: Optional[str] = None,
) -> Movement:
    """Record the return of ``material_id`` by ``user_id``; returns the ``in`` movement."""
    with transaction(session):
        open_out = find_open_checkout(session, material_id, user_id)
        if open_out is None:
            logger.warning("checkin refused: no open checkout for material=%s user=%s", material_id, user_id)
            raise NoOpenCheckoutError()

        now = utcnow()
        stamped = session.exec(
            update(Movement)
            .where(Movement.id == open_out.id, Movement.actual_return_date.is_(None))
            .values(actual_return_date=now)
        )
        if stamped.rowcount != 1:
            # another checkin closed it between our read and our write
            raise NoOpenCheckoutError()

        mv = Movement(
            material_id=material_id,
            user_id=user_id,
            movement_type=MovementType.IN.value,
            movement_date=now,
            notes=_clean_note(note),
            processed_by=acting_user_id,
        )
        session.add(mv)

        session.exec(
            update(Material)
            .where(Material.id == material_id)
            .values(status=MaterialStatus.AVAILABLE.value, updated_at=now)
        )
        session.flush()

    session.refresh(mv)
    logger.info("checkin: material=%s user=%s movement=%s by=%s", material_id, user_id, mv.id, acting_user_id)
    return mv


def has_open_checkouts(session: Session, user_id: int) -> bool:
    stmt = select(Movement.id).where(
        Movement.user_id == user_id,
        Movement.movement_type == MovementType.OUT.value,
        Movement.actual_return_date.is_(None),
    )
    return session.exec(stmt.limit(1)).first() is not None
