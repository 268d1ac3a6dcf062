from catalog.crud import authenticate_user, list_books
from catalog.models import Role, User
from catalog.schemas import BookFilterParams
from catalog.seed import seed_database


def test_seed_empty_database(db_session):
    assert seed_database(db_session) is True

    books = list_books(db_session)
    assert len(books) == 5
    assert all(book.available for book in books)
    classics = list_books(db_session, BookFilterParams(genre="classic"))
    assert [b.title for b in classics] == ["To Kill a Mockingbird", "The Great Gatsby"]

    roles = {u.email: u.role for u in db_session.query(User).all()}
    assert roles == {
        "admin@library.com": Role.ADMIN.value,
        "librarian@library.com": Role.LIBRARIAN.value,
        "user@library.com": Role.USER.value,
    }
    assert authenticate_user(db_session, "admin@library.com", "admin123") is not None


def test_seed_skips_populated_database(db_session, test_book):
    assert seed_database(db_session) is False
    assert len(list_books(db_session)) == 1
