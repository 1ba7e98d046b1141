from __future__ import annotations

from typing import Any, Callable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.config.database import Base
from app.models.user import User


@pytest.fixture()
def session_factory() -> Callable[[], Session]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture()
def db(session_factory: Callable[[], Session]) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def make_user(session_factory: Callable[[], Session]) -> Callable[..., int]:
    def _make(username: str, *, token: str | None = "ghp_testtoken123", **fields: Any) -> int:
        session = session_factory()
        try:
            user = User(
                name=fields.pop("name", username.title()),
                username=username.lower(),
                email=fields.pop("email", f"{username.lower()}@example.com"),
                github_token=token,
                **fields,
            )
            session.add(user)
            session.commit()
            return user.id
        finally:
            session.close()

    return _make
