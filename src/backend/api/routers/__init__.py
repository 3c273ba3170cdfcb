"""
API routers package.
"""

from api.routers.query import router as query_router
from api.routers.settings import router as settings_router

__all__ = ["query_router", "settings_router"]
