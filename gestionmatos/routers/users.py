import logging
from fastapi import APIRouter, Depends
from sqlalchemy import update
from sqlmodel import Session, select

from gestionmatos.db import get_session, transaction
from gestionmatos.deps import require_user, require_roles, ensure_self_or_role, MANAGERS
from gestionmatos.errors import InvalidStateError, NotFoundError, ValidationError
from gestionmatos.models import Material, Movement, User, utcnow
from gestionmatos.schemas import ProfileUpdate, RoleUpdate, UserRead, Role
from gestionmatos.services.workflow import has_open_checkouts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def get_user_or_404(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


@router.get("/profile", response_model=UserRead)
def read_profile(user: User = Depends(require_user)):
    return user


@router.put("/profile", response_model=UserRead)
def update_profile(
    body: ProfileUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    with transaction(session):
        for field, value in body.model_dump(exclude_unset=True).items():
            setattr(user, field, value)
        user.updated_at = utcnow()
        session.add(user)
    session.refresh(user)
    return user


@router.get("", response_model=list[UserRead])
def list_users(
    session: Session = Depends(get_session),
    _user: User = Depends(require_roles(*MANAGERS)),
):
    return session.exec(select(User).order_by(User.created_at.desc(), User.id.desc())).all()


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    ensure_self_or_role(user, user_id, MANAGERS)
    return get_user_or_404(session, user_id)


@router.put("/{user_id}/role", response_model=UserRead)
def update_role(
    user_id: int,
    body: RoleUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_roles(Role.ADMIN)),
):
    with transaction(session):
        target = get_user_or_404(session, user_id)
        target.role = body.role.value
        target.updated_at = utcnow()
        session.add(target)
    session.refresh(target)
    logger.info("role changed: user=%s role=%s by=%s", user_id, target.role, admin.id)
    return target


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    session: Session = Depends(get_session),
    admin: User = Depends(require_roles(Role.ADMIN)),
):
    if admin.id == user_id:
        raise ValidationError("You cannot delete your own account")

    with transaction(session):
        target = get_user_or_404(session, user_id)
        if has_open_checkouts(session, user_id):
            raise InvalidStateError("User still has borrowed material, check it in first")
        # history rows outlive the account, with the reference cleared
        session.exec(update(Movement).where(Movement.user_id == user_id).values(user_id=None))
        session.exec(update(Movement).where(Movement.processed_by == user_id).values(processed_by=None))
        session.exec(update(Material).where(Material.created_by == user_id).values(created_by=None))
        session.delete(target)
    logger.info("user deleted: id=%s by=%s", user_id, admin.id)
    return {"ok": True}
