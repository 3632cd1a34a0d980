from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlmodel import Session, select

from gestionmatos.db import get_session
from gestionmatos.deps import require_user, require_roles, MANAGERS, ADMINS
from gestionmatos.models import Material, User
from gestionmatos.schemas import (
    CategoryRead,
    MaterialCreate,
    MaterialDetail,
    MaterialListResponse,
    MaterialRead,
    MaterialSort,
    MaterialStats,
    MaterialStatus,
    MaterialUpdate,
)
from gestionmatos.services import registry, spreadsheet

router = APIRouter(prefix="/materials", tags=["materials"])


@router.get("", response_model=MaterialListResponse)
def list_materials(
    status: Optional[MaterialStatus] = Query(None, description="filter by status"),
    category: Optional[str] = Query(None, description="filter by category name"),
    search: Optional[str] = Query(None, description="substring of name / description / serial number"),
    sort: MaterialSort = Query(MaterialSort.created_desc),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    items, total = registry.list_materials(
        session,
        status=status,
        category=category,
        search=search,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    return {"items": items, "total": total, "limit": limit, "offset": offset, "q": search}


@router.post("", response_model=MaterialRead, status_code=201)
def create_material(
    data: MaterialCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_roles(*MANAGERS)),
):
    return registry.create_material(session, data, created_by=user.id)


@router.get("/categories/list", response_model=list[CategoryRead])
def list_categories(
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    return registry.list_categories(session)


@router.get("/stats/overview", response_model=MaterialStats)
def material_stats(
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    return registry.material_stats(session)


@router.get("/export.xlsx")
def export_materials_xlsx(
    search: Optional[str] = None,
    status: Optional[MaterialStatus] = None,
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    stmt = select(Material).order_by(Material.id.asc())
    conds = registry.search_conditions(status=status, search=search)
    if conds:
        stmt = stmt.where(*conds)
    materials = session.exec(stmt).all()
    return Response(
        content=spreadsheet.materials_workbook(materials),
        media_type=spreadsheet.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="materials.xlsx"'},
    )


@router.get("/{material_id}", response_model=MaterialDetail)
def get_material(
    material_id: int,
    session: Session = Depends(get_session),
    _user: User = Depends(require_user),
):
    return registry.material_detail(session, material_id)


@router.put("/{material_id}", response_model=MaterialRead)
def update_material(
    material_id: int,
    data: MaterialUpdate,
    session: Session = Depends(get_session),
    _user: User = Depends(require_roles(*MANAGERS)),
):
    return registry.update_material(session, material_id, data)


@router.delete("/{material_id}")
def delete_material(
    material_id: int,
    session: Session = Depends(get_session),
    _user: User = Depends(require_roles(*ADMINS)),
):
    registry.delete_material(session, material_id)
    return {"ok": True}
