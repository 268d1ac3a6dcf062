import logging
from sqlalchemy.orm import Session

from catalog import models
from catalog.crud import create_book, create_user
from catalog.schemas import BookCreate, UserCreate

logger = logging.getLogger(__name__)

SAMPLE_USERS = [
    (UserCreate(name="Admin User", email="admin@library.com", password="admin123"), models.Role.ADMIN),
    (UserCreate(name="Librarian User", email="librarian@library.com", password="librarian123"), models.Role.LIBRARIAN),
    (UserCreate(name="Regular User", email="user@library.com", password="user123"), models.Role.USER),
]

SAMPLE_BOOKS = [
    BookCreate(
        title="To Kill a Mockingbird",
        author="Harper Lee",
        isbn="978-0446310789",
        published_year=1960,
        genre="Classic",
        description="The unforgettable novel of a childhood in a sleepy Southern town and the crisis of conscience that rocked it.",
    ),
    BookCreate(
        title="1984",
        author="George Orwell",
        isbn="978-0451524935",
        published_year=1949,
        genre="Dystopian",
        description="Among the seminal texts of the 20th century, a rare work that grows more haunting as its futuristic purgatory becomes more real.",
    ),
    BookCreate(
        title="The Great Gatsby",
        author="F. Scott Fitzgerald",
        isbn="978-0743273565",
        published_year=1925,
        genre="Classic",
        description="F. Scott Fitzgerald's third book, the supreme achievement of his career.",
    ),
    BookCreate(
        title="Pride and Prejudice",
        author="Jane Austen",
        isbn="978-0141439518",
        published_year=1813,
        genre="Romance",
        description="The witty and independent spirit of Elizabeth Bennet in Austen's beloved classic.",
    ),
    BookCreate(
        title="The Hobbit",
        author="J.R.R. Tolkien",
        isbn="978-0547928227",
        published_year=1937,
        genre="Fantasy",
        description="A glorious account of a magnificent adventure, filled with suspense and seasoned with a quiet humor.",
    ),
]


def seed_database(db: Session) -> bool:
    """Insert the sample accounts and catalog into an empty database."""
    if db.query(models.Book).first() or db.query(models.User).first():
        logger.info("Database already has data, skipping seeding")
        return False

    logger.info("Seeding database with initial data...")
    for user, role in SAMPLE_USERS:
        create_user(db, user, role=role)
    for book in SAMPLE_BOOKS:
        create_book(db, book)
    return True
