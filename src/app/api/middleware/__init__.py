"""API middleware package."""

from src.app.api.middleware.logging import LoggingMiddleware
from src.app.api.middleware.tenant import TenantMiddleware

__all__ = ["LoggingMiddleware", "TenantMiddleware"]
