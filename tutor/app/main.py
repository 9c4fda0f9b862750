from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from tutor.app.api.chat import router as chat_router
from tutor.app.core.cache import get_cache
from tutor.app.core.config import settings
from tutor.app.core.http_client import init_http_client
from tutor.app.core.logging import get_logger, setup_logging
from tutor.app.db.async_session import close_async_engine, get_async_engine
from tutor.app.db.init_db import init_db
from tutor.app.exceptions import TutorException
from tutor.app.middleware.request_id import RequestIdMiddleware
from tutor.app.services.background import get_background_runner
from tutor.app.services.session_store import get_session_store


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[dict, None]:
        """Application lifespan context manager.

        Initializes the shared HTTP connection pool and the database on
        startup; cancels background work and closes connections on shutdown.
        """
        async with init_http_client() as http_client:
            await init_db()

            logger.info(
                "Application startup complete",
                extra={
                    "provider_keys": len(settings.provider_api_keys),
                    "models": settings.model_chain,
                    "mock_provider": settings.mock_provider,
                    "debug_mode": settings.debug,
                },
            )

            yield {"http_client": http_client}

            await get_background_runner().shutdown()

        cache = get_cache()
        if hasattr(cache, "close"):
            await cache.close()

        sessions = get_session_store()
        if hasattr(sessions, "close"):
            await sessions.close()

        await close_async_engine()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Study Tutor",
        description="Tutoring chat with topic content, worked examples, quizzes and videos",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(chat_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check with database, cache and provider status."""
        health_status: dict[str, Any] = {"status": "ok", "components": {}}

        try:
            engine = get_async_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            health_status["components"]["database"] = {"status": "ok"}
        except Exception as e:
            health_status["status"] = "degraded"
            health_status["components"]["database"] = {
                "status": "error",
                "error": str(e)[:100],  # Truncate for security
            }

        try:
            cache = get_cache()
            test_key = "_health_check_test"
            await cache.set(test_key, b"ping", ttl=5)
            value = await cache.get(test_key)
            await cache.delete(test_key)

            if value == b"ping":
                cache_type = "redis" if cache.__class__.__name__ == "RedisCache" else "memory"
                health_status["components"]["cache"] = {"status": "ok", "type": cache_type}
            else:
                health_status["status"] = "degraded"
                health_status["components"]["cache"] = {
                    "status": "error",
                    "error": "Unexpected value",
                }
        except Exception as e:
            health_status["status"] = "degraded"
            health_status["components"]["cache"] = {"status": "error", "error": str(e)[:100]}

        keys = len(settings.provider_api_keys)
        provider_ok = settings.mock_provider or keys > 0
        if not provider_ok:
            health_status["status"] = "degraded"
        health_status["components"]["provider"] = {
            "status": "ok" if provider_ok else "unconfigured",
            "type": "mock" if settings.mock_provider else "gemini",
            "keys": keys,
            "models": settings.model_chain,
        }
        health_status["components"]["video"] = {
            "status": "ok" if settings.youtube_api_key else "unconfigured"
        }
        return health_status

    @app.exception_handler(TutorException)
    async def tutor_exception_handler(request: Request, exc: TutorException) -> JSONResponse:
        """Render application errors as the chat error payload."""
        if exc.status_code >= 500:
            logger.warning(
                f"{type(exc).__name__}: {exc.message}",
                extra={"request_id": getattr(request.state, "request_id", None)},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        The traceback is only logged. The exception message is returned
        in debug mode and redacted otherwise.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={"request_id": request_id, "exception_type": type(exc).__name__},
        )

        content = TutorException().to_response()
        content["requestId"] = request_id
        if settings.debug:
            content["error"] = str(exc)
            content["exceptionType"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
