from sulitwifi.web.routers.admin import router as admin_router
from sulitwifi.web.routers.coin import router as coin_router
from sulitwifi.web.routers.portal import router as portal_router

__all__ = [
    "admin_router",
    "coin_router",
    "portal_router",
]
