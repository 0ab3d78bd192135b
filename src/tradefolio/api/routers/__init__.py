"""API routers package."""

from tradefolio.api.routers.quotes import router as quotes_router
from tradefolio.api.routers.portfolio import router as portfolio_router

__all__ = [
    "quotes_router",
    "portfolio_router",
]
