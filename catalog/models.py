import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from sqlalchemy.orm import declarative_base

from catalog.clock import utc_now

Base = declarative_base()


class Role(str, enum.Enum):
    USER = "user"
    LIBRARIAN = "librarian"
    ADMIN = "admin"


class RecordStatus(str, enum.Enum):
    """Lifecycle of a loan: ACTIVE -> OVERDUE -> RETURNED, or ACTIVE -> RETURNED."""

    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"


OPEN_STATUSES = (RecordStatus.ACTIVE.value, RecordStatus.OVERDUE.value)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    hashed_password = Column(String)
    role = Column(String, nullable=False, default=Role.USER.value)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    @property
    def borrowed_book_ids(self) -> list[int]:
        return sorted(book.id for book in self.borrowed_books)


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    author = Column(String, nullable=False)
    isbn = Column(String, unique=True, nullable=False)
    published_year = Column(Integer, nullable=True)
    genre = Column(String, nullable=False)
    description = Column(String, nullable=True)
    cover_image = Column(String, nullable=True)
    available = Column(Boolean, nullable=False, default=True)

    # Loan state, written only by the borrowing engine
    borrower_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    borrow_date = Column(DateTime, nullable=True)
    return_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    borrower = relationship("User", back_populates="borrowed_books")


class BorrowRecord(Base):
    __tablename__ = "borrow_records"

    # No foreign keys: history outlives the book and the user.
    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    book_title = Column(String, nullable=False)
    user_name = Column(String, nullable=False)
    borrow_date = Column(DateTime, nullable=False)
    due_date = Column(DateTime, nullable=False)
    return_date = Column(DateTime, nullable=True)
    status = Column(String, nullable=False, default=RecordStatus.ACTIVE.value, index=True)

    __table_args__ = (
        # At most one open loan per book
        Index(
            "uq_borrow_records_open_loan",
            "book_id",
            unique=True,
            sqlite_where=text("status IN ('active', 'overdue')"),
            postgresql_where=text("status IN ('active', 'overdue')"),
        ),
    )


User.borrowed_books = relationship("Book", back_populates="borrower")
