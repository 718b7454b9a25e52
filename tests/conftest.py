# flake8: noqa
import os
import sys
import tempfile
from pathlib import Path

# Ensure project root is on sys.path so `listy` can be imported when tests are run
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))  # noqa: E402

# must be set before the app module reads its config
os.environ.setdefault("LISTY_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LISTY_UPLOAD_DIR", tempfile.mkdtemp(prefix="listy-uploads-"))

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from listy import app as app_module
from listy import models  # noqa: F401  registers the tables
from listy.db import Base


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
# Use StaticPool so the same in-memory database is shared across connections
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app_module.app.dependency_overrides[app_module.get_db] = override_get_db


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app_module.app)


@pytest_asyncio.fixture
async def api_client():
    transport = httpx.ASGITransport(app=app_module.app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
