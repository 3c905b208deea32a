"""
API routers package.
"""
from fileshare.routers.files import router as files_router
from fileshare.routers.health import router as health_router
from fileshare.routers.share import router as share_router
from fileshare.routers.share_links import router as share_links_router

__all__ = ["files_router", "health_router", "share_router", "share_links_router"]
