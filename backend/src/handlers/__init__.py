"""Lambda handlers for the Ekami Auto API."""

from .api_handler import api_handler

__all__ = ["api_handler"]
