"""Remote API client shared by the CLI and the sync engine."""

from .client import ApiError, LumifyClient, NotAuthenticatedError

__all__ = ["ApiError", "LumifyClient", "NotAuthenticatedError"]
