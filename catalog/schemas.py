from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional

from catalog.models import RecordStatus, Role


class BookBase(BaseModel):
    title: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    isbn: str = Field(..., min_length=1)
    published_year: Optional[int] = None
    genre: str = Field(..., min_length=1)
    description: str | None = None
    cover_image: str | None = None


class BookCreate(BookBase):
    pass


class BookUpdate(BaseModel):
    """Editable catalog fields. Loan state is not part of an edit."""

    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    isbn: Optional[str] = Field(None, min_length=1)
    published_year: Optional[int] = None
    genre: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    cover_image: Optional[str] = None


class BookSchema(BookBase):
    id: int
    available: bool
    borrower_id: int | None = None
    borrow_date: Optional[datetime] = None
    return_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class BookFilterParams(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1, max_length=200)
    genre: Optional[str] = Field(None, min_length=1, max_length=50)
    available: Optional[bool] = None


class UserBase(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)


class UserCreate(UserBase):
    password: str = Field(..., min_length=1)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = Field(None, min_length=3)
    role: Optional[str] = None
    password: Optional[str] = Field(None, min_length=1)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserSchema(UserBase):
    id: int
    role: Role
    borrowed_books: list[int] = Field(
        default_factory=list, validation_alias="borrowed_book_ids"
    )

    class Config:
        from_attributes = True
        populate_by_name = True


class BorrowRequestSchema(BaseModel):
    # Defaults to the acting user; staff may borrow on behalf of another user
    user_id: Optional[int] = None


class BorrowRecordSchema(BaseModel):
    id: int
    book_id: int
    user_id: int
    book_title: str
    user_name: str
    borrow_date: datetime
    due_date: datetime
    return_date: Optional[datetime] = None
    status: RecordStatus

    class Config:
        from_attributes = True


class SweepResult(BaseModel):
    updated_count: int
    swept_at: datetime
