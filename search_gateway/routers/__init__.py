"""API routers package.

This package contains the FastAPI routers of the search gateway.
"""

from .search import router as search_router

__all__ = [
    "search_router",
]
