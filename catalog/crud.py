import logging
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import List, Optional
import bcrypt

from catalog import models, schemas
from catalog.exceptions import (
    BookNotFoundError,
    BookOnLoanError,
    BorrowRecordNotFoundError,
    DatabaseError,
    EmailTakenError,
    InvalidRoleError,
    IsbnTakenError,
    UserHasLoansError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


# Books


def list_books(
    db: Session, filters: Optional[schemas.BookFilterParams] = None
) -> List[models.Book]:
    """Books in insertion order, narrowed by every filter that is set."""
    try:
        query = db.query(models.Book)
        if filters is not None:
            if filters.title:
                query = query.filter(
                    models.Book.title.icontains(filters.title, autoescape=True)
                )
            if filters.author:
                query = query.filter(
                    models.Book.author.icontains(filters.author, autoescape=True)
                )
            if filters.genre:
                query = query.filter(
                    func.lower(models.Book.genre) == filters.genre.lower()
                )
            if filters.available is not None:
                query = query.filter(models.Book.available == filters.available)
        return query.order_by(models.Book.id).all()
    except SQLAlchemyError as e:
        raise DatabaseError("filter", str(e))


def get_book(db: Session, book_id: int) -> models.Book:
    try:
        book = db.query(models.Book).filter(models.Book.id == book_id).first()
        if book is None:
            raise BookNotFoundError(book_id)
        return book
    except SQLAlchemyError as e:
        raise DatabaseError("fetch", str(e))


def create_book(db: Session, item: schemas.BookCreate) -> models.Book:
    try:
        db_item = models.Book(**item.model_dump(), available=True)
        db.add(db_item)
        db.commit()
        db.refresh(db_item)
        logger.info(f"Book added: {db_item.id} ({db_item.title})")
        return db_item
    except IntegrityError:
        db.rollback()
        raise IsbnTakenError(item.isbn)
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError("create", str(e))


def update_book(
    db: Session, book_id: int, book_update: schemas.BookUpdate
) -> models.Book:
    book = get_book(db, book_id)
    update_data = book_update.model_dump(exclude_unset=True)
    try:
        for field, value in update_data.items():
            setattr(book, field, value)
        db.commit()
        db.refresh(book)
        return book
    except IntegrityError:
        db.rollback()
        raise IsbnTakenError(update_data.get("isbn", book.isbn))
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError("update", str(e))


def delete_book(db: Session, book_id: int) -> bool:
    book = get_book(db, book_id)
    if not book.available:
        raise BookOnLoanError(book_id)
    try:
        # Only an available book is deleted, so a loan committed by another
        # session since the read above is never lost
        deleted = db.execute(
            delete(models.Book)
            .where(models.Book.id == book_id, models.Book.available.is_(True))
            .execution_options(synchronize_session=False)
        ).rowcount
        if deleted != 1:
            db.rollback()
            if db.query(models.Book.id).filter(models.Book.id == book_id).first() is None:
                raise BookNotFoundError(book_id)
            logger.info(f"Delete of book {book_id} lost to a concurrent loan")
            raise BookOnLoanError(book_id)
        db.expunge(book)
        db.commit()
        logger.info(f"Book deleted: {book_id}")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError("delete", str(e))


# Users


def get_user_by_id(db: Session, user_id: int) -> models.User:
    try:
        user = (
            db.query(models.User)
            .options(selectinload(models.User.borrowed_books))
            .filter(models.User.id == user_id)
            .first()
        )
        if user is None:
            raise UserNotFoundError(user_id)
        return user
    except SQLAlchemyError as e:
        raise DatabaseError("fetch", str(e))


def get_user_by_email(db: Session, email: str) -> models.User:
    try:
        user = (
            db.query(models.User)
            .filter(func.lower(models.User.email) == email.lower())
            .first()
        )
        if user is None:
            raise UserNotFoundError(email)
        return user
    except SQLAlchemyError as e:
        raise DatabaseError("fetch", str(e))


def list_users(db: Session, skip: int = 0, limit: int = 100) -> List[models.User]:
    try:
        return (
            db.query(models.User)
            .options(selectinload(models.User.borrowed_books))
            .order_by(models.User.id)
            .offset(skip)
            .limit(limit)
            .all()
        )
    except SQLAlchemyError as e:
        raise DatabaseError("fetch", str(e))


def _email_in_use(db: Session, email: str, exclude_user_id: Optional[int] = None) -> bool:
    query = db.query(models.User.id).filter(
        func.lower(models.User.email) == email.lower()
    )
    if exclude_user_id is not None:
        query = query.filter(models.User.id != exclude_user_id)
    return query.first() is not None


def create_user(
    db: Session, user: schemas.UserCreate, role: models.Role = models.Role.USER
) -> models.User:
    """Register an account. New accounts get the ``user`` role unless seeded."""
    try:
        if _email_in_use(db, user.email):
            raise EmailTakenError(user.email)
        db_user = models.User(
            name=user.name,
            email=user.email,
            hashed_password=_hash_password(user.password),
            role=models.Role(role).value,
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        logger.info(f"User registered: {db_user.id} ({db_user.email})")
        return db_user
    except IntegrityError:
        db.rollback()
        raise EmailTakenError(user.email)
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError("create", str(e))


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    """Return the user if the email and password match, else None."""
    try:
        user = get_user_by_email(db, email)
    except UserNotFoundError:
        return None
    if not user.hashed_password:
        return None
    if not bcrypt.checkpw(password.encode("utf-8"), user.hashed_password.encode("utf-8")):
        return None
    return user


def update_user(
    db: Session, user_id: int, user_update: schemas.UserUpdate
) -> models.User:
    update_data = user_update.model_dump(exclude_unset=True, exclude_none=True)
    if "role" in update_data:
        try:
            update_data["role"] = models.Role(update_data["role"]).value
        except ValueError:
            raise InvalidRoleError(update_data["role"])

    user = get_user_by_id(db, user_id)
    if "email" in update_data and _email_in_use(db, update_data["email"], user_id):
        raise EmailTakenError(update_data["email"])
    if "password" in update_data:
        update_data["hashed_password"] = _hash_password(update_data.pop("password"))
    try:
        for field, value in update_data.items():
            setattr(user, field, value)
        db.commit()
        db.refresh(user)
        return user
    except IntegrityError:
        db.rollback()
        raise EmailTakenError(update_data.get("email", user.email))
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError("update", str(e))


def delete_user(db: Session, user_id: int) -> bool:
    user = get_user_by_id(db, user_id)
    if user.borrowed_books:
        raise UserHasLoansError(user_id)
    try:
        on_loan = select(models.Book.id).where(models.Book.borrower_id == user_id).exists()
        deleted = db.execute(
            delete(models.User)
            .where(models.User.id == user_id, ~on_loan)
            .execution_options(synchronize_session=False)
        ).rowcount
        if deleted != 1:
            db.rollback()
            if db.query(models.User.id).filter(models.User.id == user_id).first() is None:
                raise UserNotFoundError(user_id)
            logger.info(f"Delete of user {user_id} lost to a concurrent loan")
            raise UserHasLoansError(user_id)
        db.expunge(user)
        db.commit()
        logger.info(f"User deleted: {user_id}")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        raise DatabaseError("delete", str(e))


# Borrow records


def list_borrow_records(
    db: Session, status: Optional[models.RecordStatus] = None
) -> List[models.BorrowRecord]:
    try:
        query = db.query(models.BorrowRecord)
        if status is not None:
            query = query.filter(
                models.BorrowRecord.status == models.RecordStatus(status).value
            )
        return query.order_by(
            models.BorrowRecord.borrow_date.desc(), models.BorrowRecord.id.desc()
        ).all()
    except SQLAlchemyError as e:
        raise DatabaseError("fetch", str(e))


def get_borrow_record(db: Session, record_id: int) -> models.BorrowRecord:
    try:
        record = (
            db.query(models.BorrowRecord)
            .filter(models.BorrowRecord.id == record_id)
            .first()
        )
        if record is None:
            raise BorrowRecordNotFoundError(record_id)
        return record
    except SQLAlchemyError as e:
        raise DatabaseError("fetch", str(e))


def get_user_history(db: Session, user_id: int) -> List[models.BorrowRecord]:
    try:
        return (
            db.query(models.BorrowRecord)
            .filter(models.BorrowRecord.user_id == user_id)
            .order_by(
                models.BorrowRecord.borrow_date.desc(), models.BorrowRecord.id.desc()
            )
            .all()
        )
    except SQLAlchemyError as e:
        raise DatabaseError("fetch", str(e))
