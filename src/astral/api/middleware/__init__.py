"""API middleware package."""

from astral.api.middleware.error_handler import ErrorHandlerMiddleware

__all__ = ["ErrorHandlerMiddleware"]
