import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Request, Response, status
from sqlalchemy.orm import Session

from auth import ROLE_ADMIN, ROLE_USER, require_roles
from database import get_db
from schemas import MAX_QUANTITY, MIN_QUANTITY_CHANGE, BookCreateRequest, BookResponse, BookUpdateRequest, ErrorResponse
from services.books import BookService
from services.exceptions import BookNotFoundError, DuplicateIsbnError, InvalidBookOperationError

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/books",
    tags=["Book Inventory"],
    responses={
        400: {"model": ErrorResponse, "description": "Bad request"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Forbidden"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)

read_access = require_roles(ROLE_ADMIN, ROLE_USER)
write_access = require_roles(ROLE_ADMIN)

# ids are 64-bit INTEGER primary keys
BookId = Annotated[int, Path(ge=-(2**63), le=2**63 - 1, description="ID of the book")]


def get_book_service(request: Request, db: Session = Depends(get_db)) -> BookService:
    return BookService(db, request.app.state.publisher)


def _internal_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Internal server error while {action}",
    )


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse, "description": "Book with this ISBN already exists"}},
    summary="Add a new book to the inventory",
    dependencies=[Depends(write_access)],
)
def add_book(book: BookCreateRequest, service: BookService = Depends(get_book_service)):
    try:
        return service.create_book(book)
    except DuplicateIsbnError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except InvalidBookOperationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating book with ISBN {book.isbn}: {e}", exc_info=True)
        raise _internal_error("creating book")


@router.get(
    "",
    response_model=List[BookResponse],
    summary="Get all books",
    dependencies=[Depends(read_access)],
)
def list_books(service: BookService = Depends(get_book_service)):
    try:
        return service.get_all_books()
    except Exception as e:
        logger.error(f"Error listing books: {e}", exc_info=True)
        raise _internal_error("listing books")


@router.get(
    "/search",
    response_model=List[BookResponse],
    summary="Search for books by title, author, genre or ISBN",
    dependencies=[Depends(read_access)],
)
def search_books(
    title: Optional[str] = Query(None, description="Part of the book title"),
    author: Optional[str] = Query(None, description="Part of the author's name"),
    genre: Optional[str] = Query(None, description="Book genre"),
    isbn: Optional[str] = Query(None, description="Exact ISBN of the book"),
    service: BookService = Depends(get_book_service),
):
    try:
        return service.search_books(title=title, author=author, genre=genre, isbn=isbn)
    except Exception as e:
        logger.error(f"Error searching books: {e}", exc_info=True)
        raise _internal_error("searching books")


@router.get(
    "/isbn/{isbn}",
    response_model=BookResponse,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
    summary="Get a book by its ISBN",
    dependencies=[Depends(read_access)],
)
def get_book_by_isbn(isbn: str, service: BookService = Depends(get_book_service)):
    try:
        book = service.find_by_isbn(isbn)
    except Exception as e:
        logger.error(f"Error fetching book by ISBN {isbn}: {e}", exc_info=True)
        raise _internal_error("fetching book")

    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Book with ISBN {isbn} not found")
    return book


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
    summary="Get a book by its ID",
    dependencies=[Depends(read_access)],
)
def get_book(book_id: BookId, service: BookService = Depends(get_book_service)):
    try:
        book = service.get_book_by_id(book_id)
    except Exception as e:
        logger.error(f"Error fetching book {book_id}: {e}", exc_info=True)
        raise _internal_error("fetching book")

    if book is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Book with id {book_id} not found")
    return book


@router.put(
    "/{book_id}",
    response_model=BookResponse,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
    summary="Update an existing book's details (metadata or quantity)",
    dependencies=[Depends(write_access)],
)
def update_book(book_id: BookId, changes: BookUpdateRequest, service: BookService = Depends(get_book_service)):
    try:
        return service.update_book(book_id, changes)
    except BookNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidBookOperationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating book {book_id}: {e}", exc_info=True)
        raise _internal_error("updating book")


@router.patch(
    "/{book_id}/inventory",
    response_model=BookResponse,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
    summary="Update inventory for a specific book",
    dependencies=[Depends(write_access)],
)
def update_inventory(
    book_id: BookId,
    quantity_change: int = Query(
        ...,
        alias="quantityChange",
        ge=MIN_QUANTITY_CHANGE,
        le=MAX_QUANTITY,
        description="Change in quantity (positive to add, negative to remove)",
    ),
    service: BookService = Depends(get_book_service),
):
    try:
        return service.update_inventory(book_id, quantity_change)
    except BookNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidBookOperationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating inventory for book {book_id}: {e}", exc_info=True)
        raise _internal_error("updating inventory")


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
    summary="Delete a book by its ID",
    dependencies=[Depends(write_access)],
)
def delete_book(book_id: BookId, service: BookService = Depends(get_book_service)):
    try:
        service.delete_book(book_id)
    except BookNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Error deleting book {book_id}: {e}", exc_info=True)
        raise _internal_error("deleting book")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
