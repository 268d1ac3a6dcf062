import asyncio
import contextlib
from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI, HTTPException, Depends, Query, status
from sqlalchemy.orm import Session

from catalog import models
from catalog.admin import router as admin_router
from catalog.auth import any_user, has_role, staff_only
from catalog.borrowing import STAFF_ROLES, borrow_book, return_book
from catalog.clock import Clock, get_clock
from catalog.config import settings
from catalog.crud import (
    authenticate_user,
    create_user,
    get_book,
    get_borrow_record,
    get_user_history,
    list_books,
    list_borrow_records,
)
from catalog.exceptions import UnauthorizedError, add_exception_handlers
from catalog.overdue import run_periodic_sweep, sweep_overdue
from catalog.schemas import (
    BookFilterParams,
    BookSchema,
    BorrowRecordSchema,
    BorrowRequestSchema,
    LoginRequest,
    UserCreate,
    UserSchema,
)
from catalog.seed import seed_database
from catalog.storage import SessionLocal, engine, get_db, session_scope

from typing import List, Optional

# Set up logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.testing = app.state.testing if hasattr(app.state, "testing") else False

    sweeper = None
    if not app.state.testing:
        logger.info("Initializing database")
        models.Base.metadata.create_all(bind=engine)
        if settings.seed_sample_data:
            with session_scope() as db:
                seed_database(db)
        logger.info(
            f"Starting overdue sweeper every {settings.overdue_sweep_interval_hours}h"
        )
        sweeper = asyncio.create_task(
            run_periodic_sweep(settings.overdue_sweep_interval_seconds, SessionLocal)
        )
    yield
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        logger.info("Overdue sweeper stopped")


app = FastAPI(
    title="Library Catalog API",
    lifespan=lifespan,
    description="Catalog browsing, borrowing and library administration",
    version="1.0.0",
)

add_exception_handlers(app)
app.include_router(admin_router)


# Accounts
@app.post("/users/", response_model=UserSchema, status_code=status.HTTP_201_CREATED)
def register_user(user: UserCreate, db: Session = Depends(get_db)):
    return create_user(db, user)


@app.post("/auth/login", response_model=UserSchema)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, credentials.email, credentials.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )
    return user


# Catalog
@app.get("/books/", response_model=List[BookSchema], status_code=status.HTTP_200_OK)
def list_book_records(
    params: BookFilterParams = Depends(), db: Session = Depends(get_db)
):
    return list_books(db, params)


@app.get("/books/{id}", response_model=BookSchema)
def fetch_single_book(id: int, db: Session = Depends(get_db)):
    return get_book(db, id)


# Loans
@app.post("/books/{book_id}/borrow", response_model=BookSchema)
def borrow_book_item(
    book_id: int,
    borrow_request: Optional[BorrowRequestSchema] = None,
    actor: models.User = Depends(any_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    user_id = actor.id
    if borrow_request is not None and borrow_request.user_id is not None:
        user_id = borrow_request.user_id
    if user_id != actor.id and not has_role(actor, STAFF_ROLES):
        raise UnauthorizedError("Only staff may borrow on behalf of another user")
    return borrow_book(db, book_id, user_id, clock=clock)


@app.post("/books/{book_id}/return", response_model=BookSchema)
def return_book_item(
    book_id: int,
    actor: models.User = Depends(any_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    return return_book(db, book_id, actor.id, actor_role=actor.role, clock=clock)


@app.get("/users/me/history", response_model=List[BorrowRecordSchema])
def my_borrowing_history(
    actor: models.User = Depends(any_user), db: Session = Depends(get_db)
):
    return get_user_history(db, actor.id)


@app.get("/users/{user_id}/history", response_model=List[BorrowRecordSchema])
def user_borrowing_history(
    user_id: int,
    actor: models.User = Depends(any_user),
    db: Session = Depends(get_db),
):
    if user_id != actor.id and not has_role(actor, STAFF_ROLES):
        raise UnauthorizedError("Only staff may view another user's history")
    return get_user_history(db, user_id)


@app.get("/borrow-records/", response_model=List[BorrowRecordSchema])
def list_borrow_record_items(
    record_status: Optional[models.RecordStatus] = Query(None, alias="status"),
    actor: models.User = Depends(staff_only),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    if record_status is not None:
        sweep_overdue(db, clock=clock)
    return list_borrow_records(db, record_status)


@app.get("/borrow-records/{record_id}", response_model=BorrowRecordSchema)
def fetch_borrow_record(
    record_id: int,
    actor: models.User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return get_borrow_record(db, record_id)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
