from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError, ResponseValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger(__name__)


class LibraryError(Exception):
    """Base exception for library-related errors."""

    code = "library_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


# Error kinds
class NotFoundError(LibraryError):
    code = "not_found"


class ConflictError(LibraryError):
    code = "conflict"


class LibraryValidationError(LibraryError):
    code = "invalid"


class UnauthorizedError(LibraryError):
    code = "unauthorized"


# Not found
class BookNotFoundError(NotFoundError):
    """Raised when a book is not found in the database."""

    code = "book_not_found"

    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(f"Book with id {book_id} not found")


class UserNotFoundError(NotFoundError):
    """Raised when a user is not found in the database."""

    code = "user_not_found"

    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User with id {user_id} not found")


class BorrowRecordNotFoundError(NotFoundError):
    code = "borrow_record_not_found"

    def __init__(self, record_id: int):
        self.record_id = record_id
        super().__init__(f"Borrow record with id {record_id} not found")


# Conflicts
class BookNotAvailableError(ConflictError):
    """Raised when a book is not available for borrowing."""

    code = "not_available"

    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(f"Book with id {book_id} is not available")


class BookNotBorrowedError(ConflictError):
    """Raised when returning a book that is not on loan."""

    code = "not_borrowed"

    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(f"Book with id {book_id} is not borrowed")


class BookOnLoanError(ConflictError):
    code = "book_on_loan"

    def __init__(self, book_id: int):
        self.book_id = book_id
        super().__init__(
            f"Book with id {book_id} is currently borrowed and cannot be deleted"
        )


class UserHasLoansError(ConflictError):
    code = "user_has_loans"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(
            f"User with id {user_id} has borrowed books. "
            "Books must be returned before deleting the account"
        )


class EmailTakenError(ConflictError):
    code = "email_taken"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email {email} is already in use")


class IsbnTakenError(ConflictError):
    code = "isbn_taken"

    def __init__(self, isbn: str):
        self.isbn = isbn
        super().__init__(f"Book with ISBN {isbn} already exists")


# Validation
class InvalidRoleError(LibraryValidationError):
    code = "invalid_role"

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"Invalid role: {role}")


# Authorization
class WrongBorrowerError(UnauthorizedError):
    """Raised when someone other than the borrower or staff returns a book."""

    code = "wrong_borrower"

    def __init__(self, book_id: int, user_id: int):
        self.book_id = book_id
        self.user_id = user_id
        super().__init__(f"Book with id {book_id} is not borrowed by user {user_id}")


class DatabaseError(LibraryError):
    code = "database_error"

    def __init__(self, operation: str, details: str):
        super().__init__(f"Database error during {operation}: {details}")


# Exception handlers
def _library_error_response(status_code: int, exc: LibraryError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.error(f"HTTP error {exc.status_code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Request validation error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": "Invalid request parameters. Please check your input."},
    )


async def response_validation_exception_handler(
    request: Request, exc: ResponseValidationError
):
    logger.error(f"Response validation error: {exc.errors()}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "The server encountered an unexpected error. Please contact support."
        },
    )


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please contact support."},
    )


async def not_found_exception_handler(request: Request, exc: NotFoundError):
    logger.error(f"Not found: {exc}")
    return _library_error_response(404, exc)


async def conflict_exception_handler(request: Request, exc: ConflictError):
    logger.error(f"Conflict: {exc}")
    return _library_error_response(409, exc)


async def library_validation_exception_handler(
    request: Request, exc: LibraryValidationError
):
    logger.error(f"Invalid data: {exc}")
    return _library_error_response(400, exc)


async def unauthorized_exception_handler(request: Request, exc: UnauthorizedError):
    logger.error(f"Unauthorized: {exc}")
    return _library_error_response(403, exc)


async def database_exception_handler(request: Request, exc: DatabaseError):
    logger.error(f"Database failure: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Error occured, please try again later", "code": exc.code},
    )


def add_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(
        ResponseValidationError, response_validation_exception_handler
    )
    app.add_exception_handler(Exception, general_exception_handler)
    app.add_exception_handler(NotFoundError, not_found_exception_handler)
    app.add_exception_handler(ConflictError, conflict_exception_handler)
    app.add_exception_handler(
        LibraryValidationError, library_validation_exception_handler
    )
    app.add_exception_handler(UnauthorizedError, unauthorized_exception_handler)
    app.add_exception_handler(DatabaseError, database_exception_handler)
