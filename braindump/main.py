import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from braindump import config
from braindump.auth import TokenVerifier
from braindump.errors import BrainDumpError
from braindump.extraction import IdeaExtractor
from braindump.intake import IntakePipeline
from braindump.logging_config import setup_logging
from braindump.reminders import RemindersClient
from braindump.routes import preferences_router, router
from braindump.store import BrainDumpStore

logger = structlog.get_logger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    if first.get("type") == "missing":
        return f"{field} is required" if field else "Request body is required"
    return f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")


def create_app(store: BrainDumpStore | None = None, extractor: IdeaExtractor | None = None,
               reminders: RemindersClient | None = None, verifier: TokenVerifier | None = None) -> FastAPI:
    """Build the API. Anything not passed in is constructed from config at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_store = None
        if store is None:
            # no database is a fatal configuration error, not a per-request one
            owned_store = BrainDumpStore.connect(config.MONGODB_URI, config.MONGODB_DB)
        app.state.store = store or owned_store
        app.state.pipeline = IntakePipeline(
            app.state.store,
            extractor or IdeaExtractor(config.CLAUDE_API_KEY, config.CLAUDE_MODEL,
                                       config.ANTHROPIC_API_URL, config.LLM_TIMEOUT_SECONDS),
        )
        app.state.reminders = reminders or RemindersClient(config.OSASCRIPT_PATH, config.REMINDERS_TIMEOUT_SECONDS)
        app.state.verifier = verifier or TokenVerifier(config.JWKS_URI, config.ISSUER, config.AUTH0_AUDIENCE)
        logger.info("app_started")
        yield
        if owned_store is not None:
            owned_store.close()

    app = FastAPI(title="Brain Dump API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS or ["*"],
        allow_credentials=True, allow_methods=["*"], allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=uuid.uuid4().hex[:12])
        started = time.perf_counter()
        response = await call_next(request)
        logger.info("request", method=request.method, path=request.url.path, status=response.status_code,
                    elapsed_ms=int((time.perf_counter() - started) * 1000))
        return response

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": _validation_message(exc)}, status_code=400)

    @app.exception_handler(BrainDumpError)
    async def domain_error(request: Request, exc: BrainDumpError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path)
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    @app.get("/")
    def root():
        return {"ok": True}

    app.include_router(router)
    app.include_router(preferences_router)
    return app


def run():
    import uvicorn

    setup_logging(config.LOG_LEVEL, config.LOG_JSON)
    uvicorn.run(create_app(), host="0.0.0.0", port=int(config.PORT))


if __name__ == "__main__":
    run()
