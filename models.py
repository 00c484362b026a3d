"""
ORM models for the Book Inventory Service.
"""

from sqlalchemy import CheckConstraint, Column, Float, Integer, String

from database import Base


class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_books_price_non_negative"),
        CheckConstraint("quantity >= 0", name="ck_books_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    author = Column(String(100), nullable=False)
    genre = Column(String(50), nullable=False)
    # unique index is the authoritative guard against concurrent duplicate inserts
    isbn = Column(String(13), nullable=False, unique=True, index=True)
    price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Book id={self.id} isbn={self.isbn!r} title={self.title!r} quantity={self.quantity}>"
