from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from core.settings import STORAGE
import models.store_record  # noqa: F401


SessionFactory = Callable[[], Session]

_engine = None


def make_engine(path: Optional[Path | str] = None):
    """Create an engine for ``path``; ``None`` or ``":memory:"`` stays in memory."""

    if path is None or str(path) == ":memory:":
        return create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    db_path = Path(path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{db_path.as_posix()}", echo=False)


def init_db(engine=None) -> None:
    actual_engine = engine or get_engine()
    SQLModel.metadata.create_all(actual_engine)


def get_engine():
    global _engine
    if _engine is None:
        _engine = make_engine(STORAGE.db_path)
    return _engine


def get_session() -> Session:
    return Session(get_engine())


def session_factory(engine) -> SessionFactory:
    def factory() -> Session:
        return Session(engine)

    return factory


__all__ = [
    "SessionFactory",
    "get_engine",
    "get_session",
    "init_db",
    "make_engine",
    "session_factory",
]
