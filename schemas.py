"""
Pydantic request/response schemas for the Book Inventory Service.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Stock counts and adjustments are stored in a 32-bit INTEGER column
MAX_QUANTITY = 2**31 - 1
MIN_QUANTITY_CHANGE = -(2**31)


# ============================================================================
# BOOKS
# ============================================================================

class BookCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=100)
    genre: str = Field(..., min_length=1, max_length=50)
    isbn: str = Field(..., min_length=10, max_length=13)
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0, le=MAX_QUANTITY)

    @field_validator("title", "author", "genre", "isbn")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class BookUpdateRequest(BaseModel):
    """Partial update: omitted (or null) fields are left unchanged."""

    title: Optional[str] = Field(None, max_length=255)
    author: Optional[str] = Field(None, max_length=100)
    genre: Optional[str] = Field(None, max_length=50)
    # sign checks for price/quantity belong to the service layer
    price: Optional[float] = None
    quantity: Optional[int] = Field(None, le=MAX_QUANTITY)

    @field_validator("title", "author", "genre")
    @classmethod
    def not_blank_when_present(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("must not be blank")
        return v


class BookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    author: str
    genre: str
    isbn: str
    price: float
    quantity: int


# ============================================================================
# AUTH
# ============================================================================

class UserLoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    username: str
    roles: List[str]


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# ============================================================================
# ERRORS
# ============================================================================

class ErrorResponse(BaseModel):
    timestamp: int
    status: int
    error: str
    message: Optional[str] = None
    path: str
