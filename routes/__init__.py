"""
HTTP routers for the Book Inventory Service.
"""
