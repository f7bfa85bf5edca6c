from .entries import router as entries_router
from .stats import router as stats_router
from .users import router as users_router

__all__ = [
    "entries_router",
    "stats_router",
    "users_router",
]
