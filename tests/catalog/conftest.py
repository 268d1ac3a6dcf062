import os
from datetime import datetime
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient
from dotenv import load_dotenv

from catalog.main import app
from catalog.clock import get_clock
from catalog.crud import create_book, create_user
from catalog.models import Base, Role
from catalog.schemas import BookCreate, UserCreate
from catalog.storage import get_db

load_dotenv()

SQLALCHEMY_DATABASE_URL = os.getenv("TEST_DB_URL", "sqlite:///./test.db")

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2024, 3, 1, 9, 30)


class FrozenClock:
    """A settable clock for deterministic due dates."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def other_session(db_session):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def clock():
    return FrozenClock()


@pytest.fixture(scope="function")
def client(db_session, clock):
    app.state.testing = True

    def override_get_db():
        try:
            db = TestingSessionLocal()
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    app.state.testing = False


def _make_user(db_session, name, email, role):
    user_data = UserCreate(name=name, email=email, password="testpassword")
    return create_user(db_session, user_data, role=role)


@pytest.fixture(scope="function")
def test_user(db_session):
    return _make_user(db_session, "Test User", "test@example.com", Role.USER)


@pytest.fixture(scope="function")
def other_user(db_session):
    return _make_user(db_session, "Other User", "other@example.com", Role.USER)


@pytest.fixture(scope="function")
def librarian(db_session):
    return _make_user(db_session, "Librarian User", "librarian@example.com", Role.LIBRARIAN)


@pytest.fixture(scope="function")
def admin(db_session):
    return _make_user(db_session, "Admin User", "admin@example.com", Role.ADMIN)


@pytest.fixture(scope="function")
def test_book(db_session):
    book_data = BookCreate(
        title="1984",
        author="George Orwell",
        isbn="978-0451524935",
        published_year=1949,
        genre="Dystopian",
        description="A haunting dystopia",
    )
    return create_book(db_session, book_data)


@pytest.fixture(scope="function")
def classic_book(db_session):
    book_data = BookCreate(
        title="To Kill a Mockingbird",
        author="Harper Lee",
        isbn="978-0446310789",
        published_year=1960,
        genre="Classic",
        description="A childhood in a sleepy Southern town",
    )
    return create_book(db_session, book_data)


@pytest.fixture(scope="function")
def headers_for():
    def make_headers(user):
        return {"X-User-Id": str(user.id)}

    return make_headers
