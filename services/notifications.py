"""
Book change notifications.

Events are transient facts about a committed change. The publisher hands each
event to every registered listener synchronously; a failing listener is
logged and skipped so it can never affect the write that triggered it or the
listeners after it.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field

from schemas import BookResponse

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# EVENTS
# ============================================================================

class BookEvent(BaseModel):
    book: BookResponse
    timestamp: datetime = Field(default_factory=_utcnow)


class BookCreated(BookEvent):
    """A new book was added to the inventory."""


class BookTitleUpdated(BookEvent):
    """A book's title changed."""


class BookInventoryUpdated(BookEvent):
    """A book's stock level changed."""
    old_quantity: int
    new_quantity: int


# ============================================================================
# LISTENERS
# ============================================================================

class BookEventListener:
    """Interface for notification consumers."""

    def notify(self, event: BookEvent) -> None:
        raise NotImplementedError


class LoggingBookEventListener(BookEventListener):
    def __init__(self, event_logger: Optional[logging.Logger] = None):
        self.logger = event_logger or logging.getLogger("book_events")

    def notify(self, event: BookEvent) -> None:
        book = event.book
        if isinstance(event, BookCreated):
            self.logger.info(f"[EVENT] Book added: ID={book.id}, Title='{book.title}', ISBN='{book.isbn}'")
        elif isinstance(event, BookInventoryUpdated):
            self.logger.info(
                f"[EVENT] Inventory updated for Book ID={book.id}: "
                f"Old Quantity={event.old_quantity}, New Quantity={event.new_quantity}"
            )
        elif isinstance(event, BookTitleUpdated):
            self.logger.info(f"[EVENT] Book Title Updated for Book ID={book.id}: {book.title}")
        else:
            self.logger.info(f"[EVENT] {type(event).__name__} for Book ID={book.id}")


# ============================================================================
# PUBLISHER
# ============================================================================

class NotificationPublisher:
    def __init__(self, listeners: Optional[Iterable[BookEventListener]] = None):
        self._listeners: List[BookEventListener] = list(listeners or [])

    @property
    def listeners(self) -> List[BookEventListener]:
        return list(self._listeners)

    def register(self, listener: BookEventListener) -> None:
        self._listeners.append(listener)

    def unregister(self, listener: BookEventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def publish(self, event: BookEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener.notify(event)
            except Exception as e:
                logger.error(
                    f"Listener {type(listener).__name__} failed handling {type(event).__name__} "
                    f"for book {event.book.id}: {e}",
                    exc_info=True,
                )
