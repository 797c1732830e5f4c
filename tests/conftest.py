import os

# Must be set before anything imports app.core.config
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite://"
os.environ["PRESENCE_SWEEP_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["FEED_WATERMARK_OVERLAP_SECONDS"] = "0"

import pytest
from fastapi.testclient import TestClient

from app import models  # noqa: F401
from app.database import Base, SessionLocal, engine
from app.main import app
from app.services.user_service import user_service


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    # No context manager: the lifespan (init_db + scheduler) is not needed here
    return TestClient(app)


@pytest.fixture
def users(db):
    """alice, bob, carol and dave with profiles"""
    for name in ("alice", "bob", "carol", "dave"):
        user_service.register(db, name, display_name=name.title(), handle=name)
    return ["alice", "bob", "carol", "dave"]
