import base64
import io
import json
import secrets
import string
import time

import qrcode

from gestionmatos.errors import ValidationError
from gestionmatos.models import Material, User

_ALPHABET = string.ascii_lowercase + string.digits

MATERIAL_PREFIX = "MAT"
USER_PREFIX = "USER"


def new_token(prefix: str) -> str:
    """``<PREFIX>_<epoch ms>_<9 random chars>``, e.g. ``MAT_1700000000000_k3j9x0a2b``."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def material_payload(material: Material) -> str:
    return json.dumps(
        {"type": "material", "id": material.id, "qrCode": material.qr_code, "name": material.name},
        ensure_ascii=False,
    )


def user_payload(user: User) -> str:
    return json.dumps(
        {"type": "user", "id": user.id, "qrCode": user.qr_code, "username": user.username},
        ensure_ascii=False,
    )


def render_data_url(data: str, box_size: int = 10, border: int = 2) -> str:
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    # keep the image in memory, never on disk
    buf = io.BytesIO()
    img.save(buf)
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def decode_payload(raw: str) -> tuple[str, str]:
    """Parse scanned QR text; returns ``(type, token)``."""
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        raise ValidationError("Invalid QR code format")

    if not isinstance(parsed, dict):
        raise ValidationError("Invalid QR code format")

    kind = parsed.get("type")
    if kind not in ("material", "user"):
        raise ValidationError("Unrecognised QR code type")

    token = parsed.get("qrCode")
    if not isinstance(token, str) or not token:
        raise ValidationError("QR code payload has no token")
    return kind, token
