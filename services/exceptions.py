"""
Domain errors raised by the book service.

Routers translate these into HTTP responses; anything not derived from
BookServiceError is treated as an unexpected server error.
"""


class BookServiceError(Exception):
    """Base class for book service failures."""


class BookNotFoundError(BookServiceError):
    def __init__(self, message: str, book_id=None):
        super().__init__(message)
        self.book_id = book_id


class DuplicateIsbnError(BookServiceError):
    def __init__(self, isbn: str, concurrent: bool = False):
        message = f"Book with ISBN {isbn} already exists."
        if concurrent:
            message = f"Book with ISBN {isbn} already exists (concurrent creation)."
        super().__init__(message)
        self.isbn = isbn
        self.concurrent = concurrent


class InvalidBookOperationError(BookServiceError, ValueError):
    """A business rule rejected the requested change (e.g. negative stock)."""
