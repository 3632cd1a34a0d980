from typing import Iterable
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlmodel import Session

from gestionmatos.db import get_session
from gestionmatos.errors import AuthenticationError, AuthorizationError
from gestionmatos.models import User
from gestionmatos.schemas import Role
from gestionmatos.security import decode_token

# auto_error=False: a missing token goes through our own 401 format
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

MANAGERS = (Role.MANAGER, Role.ADMIN)
ADMINS = (Role.ADMIN,)


def has_role(role: str, required_roles: Iterable[Role | str]) -> bool:
    return role in {r.value if isinstance(r, Role) else r for r in required_roles}


def ensure_role(user: User, required_roles: Iterable[Role | str], message: str | None = None) -> None:
    if not has_role(user.role, required_roles):
        raise AuthorizationError(message)


def ensure_self_or_role(user: User, target_id: int, required_roles: Iterable[Role | str]) -> None:
    if user.id != target_id:
        ensure_role(user, required_roles)


def require_user(
    token: str | None = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    # 1) no token at all
    if not token:
        raise AuthenticationError()

    # 2) bad signature / expired / malformed
    try:
        claims = decode_token(token)
        user_id = int(claims["sub"])
    except (JWTError, ValueError, KeyError):
        raise AuthenticationError("Invalid or expired token, please log in again", code="INVALID_TOKEN")

    # 3) valid token but the account is gone
    user = session.get(User, user_id)
    if not user:
        raise AuthenticationError("User does not exist or has been deleted", code="USER_NOT_FOUND")

    return user


def require_roles(*roles: Role):
    def dependency(user: User = Depends(require_user)) -> User:
        ensure_role(user, roles)
        return user

    return dependency
