from .auth import router as auth_router
from .info import router as info_router
from .orders import router as orders_router
from .pricing import router as pricing_router
from .upload import router as upload_router

__all__ = [
    "auth_router",
    "info_router",
    "orders_router",
    "pricing_router",
    "upload_router",
]
