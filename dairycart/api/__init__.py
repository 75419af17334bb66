"""API layer module.

Contains error translation, middleware and health endpoints.
"""

from dairycart.api.errors import install_error_handlers
from dairycart.api.health import router as health_router

__all__ = [
    "health_router",
    "install_error_handlers",
]
