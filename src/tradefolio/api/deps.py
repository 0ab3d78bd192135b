"""Dependency injection for FastAPI."""

from fastapi import Depends

from tradefolio.app_context import AppContext, get_app_context
from tradefolio.services import PortfolioEngine, QuoteResolver


def get_context() -> AppContext:
    """Provide the process-wide AppContext."""
    return get_app_context()


def get_quote_resolver(context: AppContext = Depends(get_context)) -> QuoteResolver:
    """Provide QuoteResolver instance."""
    return context.resolver


def get_portfolio_engine(context: AppContext = Depends(get_context)) -> PortfolioEngine:
    """Provide PortfolioEngine instance."""
    return context.portfolio
