from datetime import datetime, timezone
from jose import jwt
from passlib.context import CryptContext
from uuid import uuid4

from gestionmatos.config import get_settings
from gestionmatos.models import User

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user: User) -> str:
    settings = get_settings()

    now = datetime.now(timezone.utc)
    iat = int(now.timestamp())
    exp = iat + settings.access_token_expire_minutes * 60

    payload = {
        "sub": str(user.id),
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "iat": iat,
        "exp": exp,
        "jti": uuid4().hex,
        "type": "access",
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> dict:
    """Return the verified claims; raises JWTError / ValueError when unusable."""
    settings = get_settings()
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])

    if not payload.get("sub"):
        raise ValueError("Missing subject")
    if payload.get("type") not in (None, "access"):
        raise ValueError("Invalid token type")
    return payload
