import logging
from contextlib import contextmanager
from typing import Iterator

from sqlmodel import SQLModel, Session, create_engine, select

from gestionmatos.config import get_settings
from gestionmatos.errors import AppError
from gestionmatos.models import Category

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Informatique", "Ordinateurs, tablettes, accessoires", "#3B82F6"),
    ("Audiovisuel", "Caméras, micros, éclairage", "#10B981"),
    ("Mobilier", "Tables, chaises, rangements", "#F59E0B"),
    ("Outils", "Outillage divers", "#EF4444"),
    ("Véhicules", "Voitures, vélos, trottinettes", "#8B5CF6"),
    ("Sport", "Équipements sportifs", "#06B6D4"),
    ("Autre", "Matériel non catégorisé", "#6B7280"),
]


def make_engine(url: str, **kwargs):
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, **kwargs)


engine = make_engine(get_settings().database_url)


def seed_categories(session: Session) -> None:
    existing = set(session.exec(select(Category.name)).all())
    for name, description, color in DEFAULT_CATEGORIES:
        if name not in existing:
            session.add(Category(name=name, description=description, color=color))
    session.commit()


def create_db_and_tables(bind=None) -> None:
    bind = bind or engine
    SQLModel.metadata.create_all(bind)
    with Session(bind) as session:
        seed_categories(session)


def get_session():
    session = Session(engine)
    try:
        yield session
    except AppError:
        # business / auth errors: the service already rolled back what it wrote
        raise
    except Exception as e:
        session.rollback()
        logger.warning("rollback: %s: %s", type(e).__name__, e)
        raise
    finally:
        session.close()


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit everything written inside the block, or nothing.

    Any exception raised in the block (domain errors included) rolls the
    session back before propagating.
    """
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
