"""
Study Workspace FastAPI Application Entry Point.

Run with: uvicorn studyspace.main:app --reload --app-dir backend
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from studyspace import __version__
from studyspace.api.routes import auth, chat, materials, notes, public, sources
from studyspace.config import get_settings, sanitize_error
from studyspace.db.session import AsyncSessionLocal, create_tables
from studyspace.schemas.base import ErrorResponse
from studyspace.services.accounts import ensure_admin_user
from studyspace.services.llm_client import AIServiceError
from studyspace.services.normalizer import MaterialShapeError
from studyspace.services.study_generator import GenerationError

logger = logging.getLogger(__name__)
settings = get_settings()


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown."""
    # Startup
    configure_logging()
    if settings.database_auto_create:
        await create_tables()
    async with AsyncSessionLocal() as db:
        await ensure_admin_user(db)
        await db.commit()
    app.state.initialized = True
    logger.info("%s started (%s)", settings.app_name, settings.environment)
    yield
    # Shutdown
    app.state.initialized = False


app = FastAPI(
    title=settings.app_name,
    description="Study workspace API: sources, notes, chat and AI study materials",
    version=__version__,
    lifespan=lifespan,
)
app.state.initialized = False

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# ERROR HANDLERS
# =============================================================================


def _error(status_code: int, message: str, errors: list[dict] | None = None) -> JSONResponse:
    body = ErrorResponse(message=message, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    first = errors[0] if errors else {"field": "", "message": "Invalid request"}
    message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
    return _error(status.HTTP_400_BAD_REQUEST, message, errors=errors)


@app.exception_handler(AIServiceError)
async def ai_service_exception_handler(request: Request, exc: AIServiceError) -> JSONResponse:
    logger.warning("AI service error on %s: %s", request.url.path, exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(MaterialShapeError)
async def material_shape_exception_handler(request: Request, exc: MaterialShapeError) -> JSONResponse:
    logger.warning("Unrecognized AI response on %s: %s", request.url.path, exc)
    return _error(status.HTTP_502_BAD_GATEWAY, str(exc))


@app.exception_handler(GenerationError)
async def generation_exception_handler(request: Request, exc: GenerationError) -> JSONResponse:
    return _error(exc.status_code, exc.message)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, sanitize_error(exc))


# Include routers
for module in (public, auth, sources, notes, chat, materials):
    app.include_router(module.router, prefix="/api")


@app.get("/api/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "SQLite",
        "initialized": bool(getattr(request.app.state, "initialized", False)),
    }
