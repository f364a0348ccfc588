import os
import traceback
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from constants import APP_VERSION, Settings
from errors import ChatError, NotFoundError
from logging_config import get_logger, setup_logging
from models import utcnow
from routers.messages import messages_router
from routers.realtime import realtime_router
from routers.relays import relays_router
from routers.rooms import rooms_router
from runtime import ChatRuntime, build_runtime

logger = get_logger(__name__)


def _error_body(message: str, detail: Optional[dict] = None) -> dict:
    body = {"success": False, "error": message, "timestamp": utcnow().isoformat()}
    if detail:
        body.update(detail)
    return body


def _register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        if isinstance(exc, NotFoundError):
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.message} ({exc.reason})")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location}: {first.get('msg', 'malformed')}" if location else "Invalid request"
        logger.info(f"{request.method} {request.url.path} -> 400 {message}")
        detail = {"details": [str(e.get("msg")) for e in errors]} if settings.development else None
        return JSONResponse(status_code=400, content=_error_body(message, detail))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        if settings.development:
            detail = {"detail": str(exc), "stack": traceback.format_exception(exc)}
            return JSONResponse(status_code=500, content=_error_body(str(exc) or "Internal server error", detail))
        return JSONResponse(status_code=500, content=_error_body("Internal server error"))


def create_app(runtime: Optional[ChatRuntime] = None) -> FastAPI:
    runtime = runtime or build_runtime()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        runtime.sweeper.start()
        logger.info(f"Relay started: store={type(runtime.store).__name__}, "
                    f"room_ttl={runtime.settings.room_ttl_seconds}s, "
                    f"message_ttl={runtime.settings.message_retention_seconds}s")
        yield
        await runtime.sweeper.stop()
        await runtime.fabric.close_all()
        logger.info("Relay shut down")

    app = FastAPI(title="Ephemeral Relay", version=APP_VERSION, lifespan=lifespan)
    app.state.runtime = runtime

    # Configure CORS to allow all origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app, runtime.settings)

    app.include_router(rooms_router)
    app.include_router(messages_router)
    app.include_router(relays_router)
    app.include_router(realtime_router)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "timestamp": utcnow().isoformat(),
            "uptime": runtime.uptime_seconds,
            "version": APP_VERSION,
            "rooms": runtime.store.room_count(),
            "connections": runtime.fabric.connection_count(),
        }

    logger.info("FastAPI application initialized")
    return app


# Setup logging
setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"), log_file=os.getenv("LOG_FILE", None))
app = create_app()
