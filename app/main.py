from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
import logging

from config.settings import Settings, get_settings
from tutor.dispatcher import Dispatcher, build_dispatcher
from tutor.errors import TutorError
from tutor.schemas import ActionRequest


SERVICE_NAME = "archie-tutor"
ACTION_PATH = "/chatWithTutor"
PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

logger = logging.getLogger("archie")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="[%(asctime)s] %(levelname)s - %(message)s",
    )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    dispatcher: Optional[Dispatcher] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the HTTP app.

    When no dispatcher is given, one is built from settings at startup; a
    missing GOOGLE_API_KEY aborts startup so the process never takes traffic.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "dispatcher", None) is None:
            app.state.dispatcher = build_dispatcher(settings)
            logger.info(
                "Config: chat_model=%s history_window=%s timeout=%ss",
                settings.chat_model,
                settings.history_window,
                settings.request_timeout,
            )
        yield

    app = FastAPI(title="Archie Tutor Relay", version="1.0.0", lifespan=lifespan)
    app.state.dispatcher = dispatcher

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > settings.max_body_bytes:
            logger.warning("Rejected request body of %s bytes", length)
            return _error(413, "Request body too large")
        return await call_next(request)

    # The mobile client calls from arbitrary origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # Outermost middleware: every preflight gets 200 with an empty body.
    @app.middleware("http")
    async def answer_preflight(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=PREFLIGHT_HEADERS)
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def handle_bad_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = first.get("msg", "Invalid request body")
        return _error(400, f"{where}: {detail}" if where else detail)

    @app.exception_handler(TutorError)
    async def handle_tutor_error(request: Request, exc: TutorError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.exception("Action failed: %s", exc)
        else:
            logger.info("Rejected request: %s", exc)
        return _error(exc.status_code, exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled server error: %s", exc)
        return _error(500, str(exc) or exc.__class__.__name__)

    @app.get("/")
    def liveness() -> Dict[str, str]:
        return {
            "status": "online",
            "service": SERVICE_NAME,
            "time": datetime.now(timezone.utc).isoformat(),
        }

    @app.post(ACTION_PATH)
    async def chat_with_tutor(req: ActionRequest, request: Request) -> Any:
        dispatcher: Dispatcher = request.app.state.dispatcher
        try:
            return await dispatcher.dispatch(req)
        except TutorError:
            raise
        except Exception as exc:
            logger.exception("Unhandled action error: %s", exc)
            return _error(500, str(exc) or exc.__class__.__name__)

    return app


configure_logging(get_settings())
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
