"""
Shared fixtures: in-memory database, fake users, fresh rate limiters
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from proclubs import auth, rate_limit
from proclubs.db import get_db
from proclubs.main import app
from proclubs.models import Base, User


@pytest.fixture(autouse=True)
def fresh_rate_limiters():
    """Each test starts with empty rate limit windows"""
    rate_limit._write_limiter = None
    rate_limit._search_limiter = None
    yield
    rate_limit._write_limiter = None
    rate_limit._search_limiter = None


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def make_user(db, discord_id, username, psn=None, xbox=None, pc=None):
    user = User(
        discord_id=discord_id,
        username=username,
        psn_username=psn,
        xbox_username=xbox,
        pc_username=pc,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def alice(db_session):
    return make_user(db_session, "100000000000000001", "alice", psn="AliceFC")


@pytest.fixture
def bob(db_session):
    return make_user(db_session, "100000000000000002", "bob", xbox="BobTheKeeper")


@pytest.fixture
def api(db_session):
    """
    TestClient bound to the in-memory database.
    Call api.login(user) to act as that user, api.logout() for anonymous.
    """
    state = {"user": None}

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[auth.get_current_user] = lambda: state["user"]

    client = TestClient(app)
    client.login = lambda user: state.__setitem__("user", user)
    client.logout = lambda: state.__setitem__("user", None)
    try:
        yield client
    finally:
        app.dependency_overrides.clear()
