import contextlib
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from catalog.config import settings


def _connect_args(url: str) -> dict:
    # SQLite connections are shared with the sweeper's worker thread
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url, connect_args=_connect_args(settings.database_url)
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextlib.contextmanager
def session_scope(session_factory=SessionLocal):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
