"""API route handlers."""

from .admin import router as admin_router
from .auth import router as auth_router
from .markets import router as markets_router
from .positions import router as positions_router
from .users import router as users_router

__all__ = [
    "admin_router",
    "auth_router",
    "markets_router",
    "positions_router",
    "users_router",
]
