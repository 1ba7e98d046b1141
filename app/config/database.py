"""Database engine and session factory"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.config.settings import settings


def _engine_kwargs(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG, **_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Create all tables registered on the declarative base."""
    import app.models  # noqa: F401  registers mappers

    Base.metadata.create_all(bind=engine)
