# API routers
from .payees import router as payees_router
from .duplicates import router as duplicates_router

__all__ = [
    "payees_router",
    "duplicates_router",
]
