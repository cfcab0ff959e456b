import pytest
import os
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import costbook.models  # noqa: F401
from costbook.core.config import settings
from costbook.core.deps import get_db
from costbook.db.base import Base
from costbook.main import app


@pytest.fixture()
def test_context():
    original_secret = settings.secret_key
    settings.secret_key = "test-secret-key"

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    settings.secret_key = original_secret


@pytest.fixture()
def file_session_factory(tmp_path):
    """Session factory over a file-backed SQLite database shared by several connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'costbook.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield session_local
    engine.dispose()
