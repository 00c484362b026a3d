"""
Book Service
Core business logic for the book inventory.

Each public method runs as one unit of work on the session it was given:
reads, validation and the write happen before a single commit, and change
notifications are published only after that commit succeeded.

Key rules:
- ISBN is a natural key: duplicates are rejected up front and, when two
  creations race past that check, the unique index violation is reported as
  the same duplicate error
- Stock never goes below zero
- Listener failures never affect a committed write
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import Book
from schemas import MAX_QUANTITY, BookCreateRequest, BookResponse, BookUpdateRequest
from services.exceptions import BookNotFoundError, DuplicateIsbnError, InvalidBookOperationError
from services.notifications import (
    BookCreated,
    BookInventoryUpdated,
    BookTitleUpdated,
    NotificationPublisher,
)
from services.repository import BookRepository

logger = logging.getLogger(__name__)


def _snapshot(book: Book) -> BookResponse:
    return BookResponse.model_validate(book)


def _clean_filter(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class BookService:
    def __init__(self, db: Session, publisher: Optional[NotificationPublisher] = None):
        self.db = db
        self.repository = BookRepository(db)
        self.publisher = publisher or NotificationPublisher()

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_all_books(self) -> List[Book]:
        logger.info("Fetching all books")
        return self.repository.find_all()

    def get_book_by_id(self, book_id: int) -> Optional[Book]:
        logger.info(f"Fetching book by id: {book_id}")
        return self.repository.find_by_id(book_id)

    def get_book_by_id_or_raise(self, book_id: int, for_update: bool = False) -> Book:
        """
        Load a book that must exist.

        Raises:
            BookNotFoundError: If no book has this id
        """
        book = self.repository.find_by_id(book_id, for_update=for_update)
        if book is None:
            logger.warning(f"Book with id {book_id} not found")
            raise BookNotFoundError(f"Book with id {book_id} not found", book_id=book_id)
        return book

    def find_by_isbn(self, isbn: str) -> Optional[Book]:
        logger.info(f"Fetching book by ISBN: {isbn}")
        return self.repository.find_by_isbn(isbn)

    def search_books(
        self,
        title: Optional[str] = None,
        author: Optional[str] = None,
        genre: Optional[str] = None,
        isbn: Optional[str] = None,
    ) -> List[Book]:
        """
        Search books by any combination of criteria.

        Title, author and genre match as case-insensitive substrings, isbn
        must match exactly. Blank criteria are ignored; when every criterion
        is blank or missing all books are returned.

        Args:
            title: Part of the title
            author: Part of the author's name
            genre: Part of the genre
            isbn: Exact ISBN

        Returns:
            Matching books in storage order
        """
        logger.info(f"Searching books with criteria - Title: {title}, Author: {author}, Genre: {genre}, ISBN: {isbn}")

        title, author, genre, isbn = (_clean_filter(v) for v in (title, author, genre, isbn))
        if title is None and author is None and genre is None and isbn is None:
            return self.get_all_books()

        return self.repository.search_by_filters(title=title, author=author, genre=genre, isbn=isbn)

    # ========================================================================
    # COMMANDS
    # ========================================================================

    def create_book(self, data: BookCreateRequest) -> Book:
        """
        Add a new book to the inventory.

        Args:
            data: Validated book fields

        Returns:
            The persisted book, including its assigned id

        Raises:
            DuplicateIsbnError: If a book with the same ISBN exists, either
                found up front or reported by the unique index
            InvalidBookOperationError: If price or quantity is negative
        """
        if self.repository.find_by_isbn(data.isbn) is not None:
            logger.warning(f"Rejected creation of duplicate ISBN {data.isbn}")
            raise DuplicateIsbnError(data.isbn)
        if data.price < 0:
            raise InvalidBookOperationError("Price cannot be negative.")
        if data.quantity < 0:
            raise InvalidBookOperationError("Quantity cannot be negative.")

        book = Book(
            title=data.title,
            author=data.author,
            genre=data.genre,
            isbn=data.isbn,
            price=data.price,
            quantity=data.quantity,
        )

        try:
            self.repository.save(book)
            self.db.commit()
        except IntegrityError as e:
            # Another transaction inserted the same ISBN after our check
            self.db.rollback()
            logger.error(f"Data integrity violation while creating book with ISBN {data.isbn}: {e}")
            raise DuplicateIsbnError(data.isbn, concurrent=True) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while creating book with ISBN {data.isbn}: {e}")
            raise

        logger.info(f"Created book: {book.title} (id: {book.id}, ISBN: {book.isbn})")
        self.publisher.publish(BookCreated(book=_snapshot(book)))
        return book

    def update_book(self, book_id: int, changes: BookUpdateRequest) -> Book:
        """
        Apply a partial update to a book.

        Only fields present in `changes` are modified. Publishes
        BookTitleUpdated when the title changed and BookInventoryUpdated when
        the quantity changed.

        Args:
            book_id: Book to update
            changes: Fields to change; unset or null fields are left alone

        Returns:
            The persisted, merged book

        Raises:
            BookNotFoundError: If no book has this id
            InvalidBookOperationError: If price or quantity is negative
        """
        updates = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}

        try:
            book = self.get_book_by_id_or_raise(book_id, for_update=True)
            before = _snapshot(book)

            if "price" in updates and updates["price"] < 0:
                raise InvalidBookOperationError("Price cannot be negative.")
            if "quantity" in updates and updates["quantity"] < 0:
                raise InvalidBookOperationError("Quantity cannot be negative.")

            for field_name, value in updates.items():
                setattr(book, field_name, value)

            self.repository.save(book)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while updating book {book_id}: {e}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Updated book with id: {book_id}. New title: {book.title}")
        self._publish_update_events(before, book)
        return book

    def _publish_update_events(self, before: BookResponse, book: Book) -> None:
        after = _snapshot(book)
        if after.title and after.title != before.title:
            self.publisher.publish(BookTitleUpdated(book=after))
        if after.quantity != before.quantity:
            self.publisher.publish(
                BookInventoryUpdated(book=after, old_quantity=before.quantity, new_quantity=after.quantity)
            )

    def update_inventory(self, book_id: int, quantity_change: int) -> Book:
        """
        Restock (positive change) or consume (negative change) a book.

        Args:
            book_id: Book whose stock changes
            quantity_change: Signed amount to add to the current quantity

        Returns:
            The persisted book with its new quantity

        Raises:
            BookNotFoundError: If no book has this id
            InvalidBookOperationError: If stock would drop below zero; the
                stored quantity is left untouched
        """
        try:
            book = self.get_book_by_id_or_raise(book_id, for_update=True)
            old_quantity = book.quantity
            new_quantity = old_quantity + quantity_change
            if new_quantity < 0:
                raise InvalidBookOperationError(
                    f"Inventory level cannot go below zero for book ID {book_id}."
                )
            if new_quantity > MAX_QUANTITY:
                raise InvalidBookOperationError(
                    f"Inventory level cannot exceed {MAX_QUANTITY} for book ID {book_id}."
                )

            book.quantity = new_quantity
            self.repository.save(book)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while updating inventory for book {book_id}: {e}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Updated inventory for book id {book_id}. Old quantity: {old_quantity}, New quantity: {new_quantity}")
        self.publisher.publish(
            BookInventoryUpdated(book=_snapshot(book), old_quantity=old_quantity, new_quantity=new_quantity)
        )
        return book

    def delete_book(self, book_id: int) -> None:
        """
        Permanently remove a book. No notification is published.

        Raises:
            BookNotFoundError: If no book has this id
        """
        try:
            if not self.repository.exists_by_id(book_id):
                logger.warning(f"Attempted to delete non-existent book with id {book_id}")
                raise BookNotFoundError(f"Book with id {book_id} not found, cannot delete.", book_id=book_id)

            self.repository.delete_by_id(book_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database error while deleting book {book_id}: {e}")
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Deleted book with id: {book_id}")
