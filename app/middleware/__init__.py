"""
Middleware package for FastAPI application.
"""
from app.middleware.error_handling import ErrorHandlingMiddleware, setup_error_handling

__all__ = ['ErrorHandlingMiddleware', 'setup_error_handling']
