"""
Services module for the Book Inventory Service.
Contains business logic separated from HTTP handling for testability.
"""

from .books import BookService

__all__ = ['BookService']
