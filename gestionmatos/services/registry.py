import logging
from typing import Optional

from sqlalchemy import case, delete, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from gestionmatos.db import transaction
from gestionmatos.errors import ConflictError, InvalidStateError, NotFoundError
from gestionmatos.models import Category, Material, Movement, User, utcnow
from gestionmatos.schemas import (
    CategoryStats,
    MaterialCreate,
    MaterialDetail,
    MaterialSort,
    MaterialStats,
    MaterialStatus,
    MaterialUpdate,
    StatusCounts,
)
from gestionmatos.services.qrcodes import MATERIAL_PREFIX, new_token

logger = logging.getLogger(__name__)

SERIAL_TAKEN = "Serial number already in use"

ORDER_MAP = {
    MaterialSort.created_desc: (Material.created_at.desc(), Material.id.desc()),
    MaterialSort.created_asc: (Material.created_at.asc(), Material.id.asc()),
    MaterialSort.name_asc: (Material.name.asc(),),
    MaterialSort.name_desc: (Material.name.desc(),),
    MaterialSort.id_desc: (Material.id.desc(),),
    MaterialSort.id_asc: (Material.id.asc(),),
}


def get_material(session: Session, material_id: int) -> Material:
    material = session.get(Material, material_id)
    if not material:
        raise NotFoundError("Material not found")
    return material


def _detailed():
    return (
        select(Material, Category.color, User.username)
        .join(Category, Category.name == Material.category, isouter=True)
        .join(User, User.id == Material.created_by, isouter=True)
    )


def _to_detail(row) -> MaterialDetail:
    material, color, username = row
    return MaterialDetail(**material.model_dump(), category_color=color, created_by_username=username)


def search_conditions(
    status: Optional[MaterialStatus] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> list:
    conds = []
    if status is not None:
        conds.append(Material.status == status.value)
    if category:
        conds.append(Material.category == category)
    if search:
        conds.append(
            or_(
                Material.name.contains(search),
                Material.description.contains(search),
                Material.serial_number.contains(search),
            )
        )
    return conds


def material_detail(session: Session, material_id: int) -> MaterialDetail:
    row = session.exec(_detailed().where(Material.id == material_id)).first()
    if row is None:
        raise NotFoundError("Material not found")
    return _to_detail(row)


def list_materials(
    session: Session,
    *,
    status: Optional[MaterialStatus] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    sort: MaterialSort = MaterialSort.created_desc,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[MaterialDetail], int]:
    conds = search_conditions(status, category, search)

    count_stmt = select(func.count()).select_from(Material)
    items_stmt = _detailed()
    if conds:
        count_stmt = count_stmt.where(*conds)
        items_stmt = items_stmt.where(*conds)

    total = session.exec(count_stmt).one()
    rows = session.exec(items_stmt.order_by(*ORDER_MAP[sort]).offset(offset).limit(limit)).all()
    return [_to_detail(r) for r in rows], total


def create_material(session: Session, data: MaterialCreate, created_by: int) -> Material:
    material = Material(
        **data.model_dump(),
        qr_code=new_token(MATERIAL_PREFIX),
        status=MaterialStatus.AVAILABLE.value,
        created_by=created_by,
    )
    try:
        with transaction(session):
            session.add(material)
    except IntegrityError:
        raise ConflictError(SERIAL_TAKEN)

    session.refresh(material)
    logger.info("material created: id=%s name=%r by=%s", material.id, material.name, created_by)
    return material


def _set_status(session: Session, material_id: int, status: MaterialStatus, now) -> None:
    # borrowed is owned by checkout/checkin; a checkout that committed after
    # our read leaves zero matching rows here
    changed = session.exec(
        update(Material)
        .where(Material.id == material_id, Material.status != MaterialStatus.BORROWED.value)
        .values(status=status.value, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if changed.rowcount != 1:
        logger.warning("status edit refused: material=%s is borrowed", material_id)
        raise InvalidStateError("Material is borrowed, check it in first")


def update_material(session: Session, material_id: int, data: MaterialUpdate) -> Material:
    changes = data.model_dump(exclude_unset=True)
    new_status = changes.pop("status", None)
    if "name" in changes and changes["name"] is None:
        changes.pop("name")

    try:
        with transaction(session):
            material = get_material(session, material_id)
            now = utcnow()

            if new_status is not None and new_status != material.status:
                if new_status == MaterialStatus.BORROWED:
                    raise InvalidStateError("Use checkout to mark a material as borrowed")
                _set_status(session, material_id, MaterialStatus(new_status), now)

            for field, value in changes.items():
                setattr(material, field, value)
            material.updated_at = now
            session.add(material)
    except IntegrityError:
        raise ConflictError(SERIAL_TAKEN)

    session.refresh(material)
    return material


def delete_material(session: Session, material_id: int) -> None:
    with transaction(session):
        material = get_material(session, material_id)
        session.exec(delete(Movement).where(Movement.material_id == material_id))
        session.delete(material)
    logger.info("material deleted: id=%s (with its movements)", material_id)


def list_categories(session: Session) -> list[Category]:
    return session.exec(select(Category).order_by(Category.name.asc())).all()


def _status_sum(status: MaterialStatus):
    return func.coalesce(func.sum(case((Material.status == status.value, 1), else_=0)), 0)


def material_stats(session: Session) -> MaterialStats:
    columns = [
        func.count(Material.id),
        _status_sum(MaterialStatus.AVAILABLE),
        _status_sum(MaterialStatus.BORROWED),
        _status_sum(MaterialStatus.MAINTENANCE),
        _status_sum(MaterialStatus.LOST),
    ]

    def counts(values) -> dict:
        total, available, borrowed, maintenance, lost = (int(v or 0) for v in values)
        return dict(total=total, available=available, borrowed=borrowed, maintenance=maintenance, lost=lost)

    overall = counts(session.exec(select(*columns)).one())

    stmt = select(Material.category, *columns).group_by(Material.category).order_by(Material.category.asc())
    by_category = [
        CategoryStats(category=row[0], **counts(row[1:]))
        for row in session.exec(stmt).all()
    ]
    return MaterialStats(overall=StatusCounts(**overall), by_category=by_category)
