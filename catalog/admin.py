"""Management endpoints for the catalog and user accounts."""

import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from catalog import models
from catalog.auth import admin_only, staff_only
from catalog.clock import Clock, get_clock
from catalog.crud import (
    create_book,
    delete_book,
    delete_user,
    get_user_by_id,
    list_users,
    update_book,
    update_user,
)
from catalog.overdue import sweep_overdue
from catalog.schemas import (
    BookCreate,
    BookSchema,
    BookUpdate,
    SweepResult,
    UserSchema,
    UserUpdate,
)
from catalog.storage import get_db

from typing import List

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/books/", response_model=BookSchema, status_code=status.HTTP_201_CREATED)
def add_book(
    book: BookCreate,
    actor: models.User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    logger.info(f"User {actor.id} adding book: {book.title}")
    return create_book(db, book)


@router.put("/books/{book_id}", response_model=BookSchema)
def modify_book(
    book_id: int,
    book_update: BookUpdate,
    actor: models.User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return update_book(db, book_id, book_update)


@router.delete("/books/{book_id}", response_model=dict)
def remove_book(
    book_id: int,
    actor: models.User = Depends(admin_only),
    db: Session = Depends(get_db),
):
    delete_book(db, book_id)
    return {"message": f"Book {book_id} successfully deleted"}


@router.get("/users/", response_model=List[UserSchema])
def list_user_accounts(
    skip: int = 0,
    limit: int = 100,
    actor: models.User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return list_users(db, skip=skip, limit=limit)


@router.get("/users/{user_id}", response_model=UserSchema)
def read_user(
    user_id: int,
    actor: models.User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return get_user_by_id(db, user_id)


@router.put("/users/{user_id}", response_model=UserSchema)
def modify_user(
    user_id: int,
    user_update: UserUpdate,
    actor: models.User = Depends(admin_only),
    db: Session = Depends(get_db),
):
    logger.info(f"Admin {actor.id} updating user {user_id}")
    return update_user(db, user_id, user_update)


@router.delete("/users/{user_id}", response_model=dict)
def remove_user(
    user_id: int,
    actor: models.User = Depends(admin_only),
    db: Session = Depends(get_db),
):
    delete_user(db, user_id)
    return {"message": f"User {user_id} successfully deleted"}


@router.post("/borrow-records/sweep", response_model=SweepResult)
def sweep_overdue_records(
    actor: models.User = Depends(staff_only),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    now = clock()
    updated = sweep_overdue(db, now=now)
    return SweepResult(updated_count=updated, swept_at=now)
