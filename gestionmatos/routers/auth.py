import logging
from fastapi import APIRouter, Depends
from sqlmodel import Session, select
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from gestionmatos.db import get_session, transaction
from gestionmatos.errors import AuthenticationError, ConflictError
from gestionmatos.models import User
from gestionmatos.schemas import UserCreate, LoginRequest, AuthResponse, UserRead, Role
from gestionmatos.security import hash_password, verify_password, create_access_token
from gestionmatos.services.qrcodes import USER_PREFIX, new_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

USER_EXISTS = "Username or email already in use"


def _auth_response(user: User) -> dict:
    return {
        "token": create_access_token(user),
        "token_type": "bearer",
        "user": UserRead.model_validate(user, from_attributes=True),
    }


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(data: UserCreate, session: Session = Depends(get_session)):
    # 1) friendly message for the common case
    existing = session.exec(
        select(User).where(or_(User.username == data.username, User.email == data.email))
    ).first()
    if existing:
        raise ConflictError(USER_EXISTS)

    # 2) bootstrap: the very first account administers the instance
    is_first = session.exec(select(func.count()).select_from(User)).one() == 0

    user = User(
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        role=(Role.ADMIN if is_first else Role.USER).value,
        qr_code=new_token(USER_PREFIX),
    )

    # 3) unique constraint still guards concurrent registrations
    try:
        with transaction(session):
            session.add(user)
    except IntegrityError:
        raise ConflictError(USER_EXISTS)

    session.refresh(user)
    logger.info("user registered: id=%s username=%r role=%s", user.id, user.username, user.role)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
def login(data: LoginRequest, session: Session = Depends(get_session)):
    user = session.exec(
        select(User).where(or_(User.username == data.username, User.email == data.username))
    ).first()
    if (not user) or (not verify_password(data.password, user.password_hash)):
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    return _auth_response(user)
