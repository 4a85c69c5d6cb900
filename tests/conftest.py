import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["DATABASE_CLIENT"] = "sqlite"
os.environ["SQLITE_PATH"] = ":memory:"
os.environ["SMTP_ENABLED"] = "false"

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.dependencies import get_current_user
from app.core.rate_limit import limiter
from app.database import Base, get_db
from app.main import app as fastapi_app
from app.models.listing import Listing
from app.models.user import University, User
from app.utils.time_utils import utc_now

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def university(db):
    university = University(name="State University", domain="state.edu", city="College Town", state="CA")
    db.add(university)
    db.commit()
    db.refresh(university)
    return university


@pytest.fixture
def make_user(db, university):
    counter = {"n": 0}

    def _make_user(first_name="Student", **overrides):
        counter["n"] += 1
        user = User(
            email=overrides.pop("email", f"student{counter['n']}@state.edu"),
            university_id=university.id,
            first_name=first_name,
            last_name="Tester",
            **overrides
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def seller(make_user):
    return make_user("Sally")


@pytest.fixture
def buyer(make_user):
    return make_user("Bruno")


@pytest.fixture
def make_listing(db, seller, university):
    def _make_listing(owner=None, **overrides):
        now = utc_now()
        owner = owner or seller
        values = dict(
            seller_id=owner.id,
            university_id=university.id,
            title="Intro to Algorithms textbook",
            description="Clean copy, no highlighting inside.",
            category="Textbooks",
            condition="Good",
            price=Decimal("40.00"),
            status="active",
            available_from=now - timedelta(days=1),
            available_until=now + timedelta(days=29),
            views=0,
        )
        values.update(overrides)
        listing = Listing(**values)
        db.add(listing)
        db.commit()
        db.refresh(listing)
        return listing

    return _make_listing


@pytest.fixture
def listing(make_listing):
    return make_listing()


@pytest.fixture
def client(db):
    """TestClient bound to the test session; authenticate with client.login(user)"""
    state = {"user": None}

    def override_get_db():
        yield db

    def override_get_current_user():
        if state["user"] is None:
            from fastapi import HTTPException
            raise HTTPException(status_code=401, detail="Could not validate credentials")
        return state["user"]

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_current_user] = override_get_current_user

    limiter.reset()
    test_client = TestClient(fastapi_app)

    def login(user):
        state["user"] = user

    test_client.login = login

    yield test_client

    fastapi_app.dependency_overrides.clear()
