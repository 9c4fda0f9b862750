"""HTTP API routers."""

from tutor.app.api.chat import router as chat_router

__all__ = ["chat_router"]
