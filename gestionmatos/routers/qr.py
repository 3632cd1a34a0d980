from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from gestionmatos.db import get_session
from gestionmatos.deps import require_user, ensure_self_or_role, MANAGERS
from gestionmatos.errors import NotFoundError
from gestionmatos.models import Material, User
from gestionmatos.schemas import MaterialQR, MaterialRead, ScanRequest, ScanResult, UserQR, UserRead
from gestionmatos.services import qrcodes
from gestionmatos.services.registry import get_material

router = APIRouter(prefix="/qr", tags=["qr"])


@router.get("/material/{material_id}", response_model=MaterialQR)
def material_qr(
    material_id: int,
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    material = get_material(session, material_id)
    data = qrcodes.material_payload(material)
    return {"qr_code": qrcodes.render_data_url(data), "data": data, "material": material}


@router.get("/user/{user_id}", response_model=UserQR)
def user_qr(
    user_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    ensure_self_or_role(user, user_id, MANAGERS)
    target = session.get(User, user_id)
    if not target:
        raise NotFoundError("User not found")
    data = qrcodes.user_payload(target)
    return {"qr_code": qrcodes.render_data_url(data), "data": data, "user": target}


@router.post("/scan", response_model=ScanResult)
def scan(
    body: ScanRequest,
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    kind, token = qrcodes.decode_payload(body.qr_data)

    if kind == "material":
        material = session.exec(select(Material).where(Material.qr_code == token)).first()
        if not material:
            raise NotFoundError("Material not found")
        record = MaterialRead.model_validate(material, from_attributes=True)
    else:
        found = session.exec(select(User).where(User.qr_code == token)).first()
        if not found:
            raise NotFoundError("User not found")
        record = UserRead.model_validate(found, from_attributes=True)

    return {"type": kind, "data": record.model_dump(mode="json")}
