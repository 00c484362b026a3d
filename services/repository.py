"""
Storage access for books.

Thin wrapper around a SQLAlchemy session. It never commits: the caller owns
the transaction (see services/books.py).
"""

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Book

logger = logging.getLogger(__name__)


def _contains_pattern(value: str) -> str:
    # LIKE wildcards in user input match literally; case folding happens in SQL
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class BookRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, book_id: int, for_update: bool = False) -> Optional[Book]:
        query = self.db.query(Book).filter(Book.id == book_id)
        if for_update:
            # Lock the row for the rest of the transaction (ignored by SQLite)
            query = query.with_for_update()
        return query.first()

    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        return self.db.query(Book).filter(Book.isbn == isbn).first()

    def find_all(self) -> List[Book]:
        return self.db.query(Book).all()

    def search_by_filters(
        self,
        title: Optional[str] = None,
        author: Optional[str] = None,
        genre: Optional[str] = None,
        isbn: Optional[str] = None,
    ) -> List[Book]:
        """
        Case-insensitive substring match on title/author/genre, exact match on
        isbn. Filters left as None are not applied; the rest are AND-combined.
        """
        query = self.db.query(Book)

        if title is not None:
            query = query.filter(func.lower(Book.title).like(func.lower(_contains_pattern(title)), escape="\\"))
        if author is not None:
            query = query.filter(func.lower(Book.author).like(func.lower(_contains_pattern(author)), escape="\\"))
        if genre is not None:
            query = query.filter(func.lower(Book.genre).like(func.lower(_contains_pattern(genre)), escape="\\"))
        if isbn is not None:
            query = query.filter(Book.isbn == isbn)

        return query.all()

    def save(self, book: Book) -> Book:
        """
        Insert the book when it has no id yet, otherwise write its changes.

        Flushes immediately so constraint violations (IntegrityError) surface
        here rather than at commit time.
        """
        if book.id is None:
            self.db.add(book)
        self.db.flush()
        return book

    def delete_by_id(self, book_id: int) -> None:
        self.db.query(Book).filter(Book.id == book_id).delete(synchronize_session=False)
        self.db.flush()

    def exists_by_id(self, book_id: int) -> bool:
        return self.db.query(Book.id).filter(Book.id == book_id).first() is not None
