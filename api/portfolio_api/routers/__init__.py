"""API routers."""

from portfolio_api.routers.auth import router as auth_router
from portfolio_api.routers.health import router as health_router
from portfolio_api.routers.otp import router as otp_router
from portfolio_api.routers.passkeys import router as passkeys_router

__all__ = [
    "health_router",
    "auth_router",
    "passkeys_router",
    "otp_router",
]
