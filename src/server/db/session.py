from typing import Generator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from src.server.settings.config import settings


def make_engine(url: str):
    """
    SQLite i minnet (tester) behöver StaticPool så att alla sessioner ser
    samma databas.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    return create_engine(url, echo=False)


# Kör backend från projektroten så att SQLite-pathen stämmer
engine = make_engine(settings.database_url)


def init_db(bind=None) -> None:
    # importeras för att tabellerna ska registreras i metadata
    from src.server import models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
