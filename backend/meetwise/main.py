from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler

from sqlalchemy.engine import Engine

from meetwise.config import Settings
from meetwise.models.base import engine_from_settings, init_db
from meetwise.api.meetings import router as meetings_router
from meetwise.api.notifications import router as notifications_router
from meetwise.api.tasks import router as tasks_router
from meetwise.services.errors import ServiceError
from meetwise.services.llm_gateway import LlmGateway, build_gateway
from meetwise.services.notification_dispatcher import (
    Dispatcher,
    DisabledNotificationDispatcher,
    NotificationDispatcher,
)


def _configure_logging(settings: Settings) -> None:
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    if settings.logs_dir is None:
        return
    if any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        return
    log_file = settings.logs_dir / "backend.log"
    handler = RotatingFileHandler(str(log_file), maxBytes=5_000_000, backupCount=2)
    handler.setFormatter(logging.Formatter(fmt="%(asctime)s %(levelname)s %(name)s %(message)s"))
    root.addHandler(handler)


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    gateway: Optional[LlmGateway] = None,
    dispatcher: Optional[Dispatcher] = None,
) -> FastAPI:
    settings = settings or Settings()
    engine = engine or engine_from_settings(settings)

    app = FastAPI(title="Meetwise Backend", version="0.1.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.gateway = gateway or build_gateway(settings)
    if dispatcher is None:
        dispatcher = NotificationDispatcher(engine) if settings.notifications_enabled else DisabledNotificationDispatcher()
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def _startup() -> None:
        settings.ensure_dirs()
        _configure_logging(settings)
        init_db(engine)
        logging.getLogger("meetwise").info(
            "Started %s (notifications %s)",
            settings.app_name,
            "enabled" if settings.notifications_enabled else "disabled",
        )

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(meetings_router)
    app.include_router(tasks_router)
    app.include_router(notifications_router)

    @app.exception_handler(ServiceError)
    async def _service_error_handler(request: Request, exc: ServiceError):  # type: ignore[override]
        if exc.status_code >= 500:
            logging.getLogger("meetwise").error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "kind": exc.kind})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[override]
        logging.getLogger("meetwise").exception("Unhandled exception")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    return app


app = create_app()


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Meetwise Backend Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (dev only)")

    args = parser.parse_args()

    uvicorn.run(
        "meetwise.main:app" if args.reload else app,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
