from .auth import router as auth_router
from .members import router as members_router
from .members import locations_router

__all__ = [
    'auth_router',
    'members_router',
    'locations_router',
]
