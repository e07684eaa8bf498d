"""Route modules."""

from .identity import router as identity_router
from .transcode import router as transcode_router

__all__ = ["identity_router", "transcode_router"]
