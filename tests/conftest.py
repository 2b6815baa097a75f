import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from homecuistot.main import app
from homecuistot.db import (
    Base,
    OwnerScope,
    enable_sqlite_savepoints,
    enable_sqlite_unicode_lower,
    get_db,
)
from homecuistot.models import Ingredient, generate_uuid

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

# One shared in-memory connection; savepoint hooks so per-item rollback works.
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(engine)
enable_sqlite_unicode_lower(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

OWNER_ID = "11111111-1111-4111-8111-111111111111"
OTHER_OWNER_ID = "22222222-2222-4222-8222-222222222222"

CATALOG = {
    "tomato": "vegetables",
    "egg": "eggs",
    "milk": "dairy",
    "bacon": "meat",
    "pasta": "cereal",
    "parmesan": "cheeses",
    "salt": "salt",
    "olive oil": "oils_and_fats",
}


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Direct database session for setup and assertions."""
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(db_session):
    """Test client sharing ``db_session`` so the single SQLite connection
    never sees two open transactions."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        c.headers.update({"X-User-Id": OWNER_ID})
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def scope(db_session):
    return OwnerScope(db_session, OWNER_ID)


@pytest.fixture
def other_scope(db_session):
    return OwnerScope(db_session, OTHER_OWNER_ID)


@pytest.fixture
def catalog(db_session):
    """Seed the shared catalog; returns name -> id."""
    ids = {}
    for name, category in CATALOG.items():
        ids[name] = generate_uuid()
        db_session.add(Ingredient(id=ids[name], name=name, category=category))
    db_session.commit()
    return ids


import fakeredis
import fakeredis.aioredis
from homecuistot.infra import redis_client


@pytest.fixture(autouse=True)
def mock_redis():
    server = fakeredis.FakeServer()
    redis_client._redis_async = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)

    yield

    redis_client._redis_async = None
