"""Borrow and return transitions.

Each operation runs as a single transaction on the session it is given: the
book row, the borrower's loan list (the ``User.borrowed_books`` relationship
over ``Book.borrower_id``) and the borrow record change together or not at
all.  The book row is flipped with a conditional UPDATE, so of two sessions
racing to borrow the same book only one can commit.
"""

import logging
from datetime import timedelta
from sqlalchemy import update
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from catalog import models
from catalog.clock import Clock, utc_now
from catalog.crud import get_book, get_user_by_id
from catalog.exceptions import (
    BookNotAvailableError,
    BookNotBorrowedError,
    DatabaseError,
    InvalidRoleError,
    WrongBorrowerError,
)

logger = logging.getLogger(__name__)

LOAN_PERIOD = timedelta(days=14)

STAFF_ROLES = frozenset({models.Role.LIBRARIAN, models.Role.ADMIN})


def can_return_for_others(actor_role) -> bool:
    try:
        return models.Role(actor_role) in STAFF_ROLES
    except ValueError:
        raise InvalidRoleError(actor_role)


def borrow_book(
    db: Session, book_id: int, user_id: int, clock: Clock = utc_now
) -> models.Book:
    book = get_book(db, book_id)
    if not book.available:
        raise BookNotAvailableError(book_id)
    user = get_user_by_id(db, user_id)

    borrow_date = clock()
    due_date = borrow_date + LOAN_PERIOD
    try:
        claimed = db.execute(
            update(models.Book)
            .where(models.Book.id == book_id, models.Book.available.is_(True))
            .values(
                available=False,
                borrower_id=user_id,
                borrow_date=borrow_date,
                return_date=due_date,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            db.rollback()
            logger.info(f"Borrow of book {book_id} lost to a concurrent loan")
            raise BookNotAvailableError(book_id)

        db.add(
            models.BorrowRecord(
                book_id=book_id,
                user_id=user_id,
                book_title=book.title,
                user_name=user.name,
                borrow_date=borrow_date,
                due_date=due_date,
                status=models.RecordStatus.ACTIVE.value,
            )
        )
        db.commit()
    except IntegrityError:
        # The open-loan index rejected a second active record for this book
        db.rollback()
        raise BookNotAvailableError(book_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Borrow of book {book_id} by user {user_id} failed: {e}")
        raise DatabaseError("borrow", str(e))

    db.refresh(book)
    logger.info(f"Book {book_id} borrowed by user {user_id}, due {due_date.isoformat()}")
    return book


def return_book(
    db: Session,
    book_id: int,
    user_id: int,
    actor_role=models.Role.USER,
    clock: Clock = utc_now,
) -> models.Book:
    """Return ``book_id`` on behalf of ``user_id`` acting with ``actor_role``.

    The current borrower may always return their book.  Librarians and admins
    may return a book borrowed by anyone; the loan closed is then the
    borrower's, not the actor's.
    """
    book = get_book(db, book_id)
    if book.available:
        raise BookNotBorrowedError(book_id)
    borrower_id = book.borrower_id
    if borrower_id != user_id and not can_return_for_others(actor_role):
        raise WrongBorrowerError(book_id, user_id)

    returned_at = clock()
    try:
        released = db.execute(
            update(models.Book)
            .where(
                models.Book.id == book_id,
                models.Book.available.is_(False),
                models.Book.borrower_id == borrower_id,
            )
            .values(
                available=True,
                borrower_id=None,
                borrow_date=None,
                return_date=None,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if released != 1:
            db.rollback()
            raise BookNotBorrowedError(book_id)

        closed = db.execute(
            update(models.BorrowRecord)
            .where(
                models.BorrowRecord.book_id == book_id,
                models.BorrowRecord.user_id == borrower_id,
                models.BorrowRecord.status.in_(models.OPEN_STATUSES),
            )
            .values(status=models.RecordStatus.RETURNED.value, return_date=returned_at)
            .execution_options(synchronize_session=False)
        ).rowcount
        if closed == 0:
            logger.warning(
                f"Book {book_id} returned by user {borrower_id} without an open borrow record"
            )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Return of book {book_id} by user {user_id} failed: {e}")
        raise DatabaseError("return", str(e))

    db.refresh(book)
    if borrower_id != user_id:
        logger.info(f"Book {book_id} returned for user {borrower_id} by user {user_id}")
    else:
        logger.info(f"Book {book_id} returned by user {user_id}")
    return book
