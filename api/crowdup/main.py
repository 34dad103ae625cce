"""FastAPI application entrypoint, middleware wiring, and error translation.

Invariants:
- Clients never see internal error details; they are logged server-side.
- Request validation failures answer 400 rather than FastAPI's default 422.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from crowdup.api.middleware import build_csrf_middleware
from crowdup.api.router import api_router
from crowdup.core.config import settings
from crowdup.core.cookies import CSRF_HEADER_NAME
from crowdup.core.csrf import CsrfGuard
from crowdup.core.errors import AuthError, UnexpectedError
from crowdup.core.logging import configure_logging
from crowdup.db.session import init_models

configure_logging()
logger = logging.getLogger("crowdup.main")

app = FastAPI(title=settings.app_name)

app.middleware("http")(build_csrf_middleware(CsrfGuard.from_settings(settings), settings))
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", CSRF_HEADER_NAME],
)
app.include_router(api_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def _create_tables() -> None:
    """Create any missing tables so a fresh database can serve auth calls."""
    if settings.create_tables_on_startup:
        await init_models()
        logger.info("Database tables ensured")


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Submitted values are dropped so passwords are never echoed back.
    errors = [{"loc": err["loc"], "msg": err["msg"], "type": err["type"]} for err in exc.errors()]
    return JSONResponse(
        {"detail": "Invalid input", "errors": jsonable_encoder(errors)},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


@app.exception_handler(AuthError)
async def _auth_error(request: Request, exc: AuthError) -> JSONResponse:
    if isinstance(exc, UnexpectedError):
        logger.error("Unexpected failure on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def _database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"detail": UnexpectedError.detail}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.get("/health", tags=["internal"])
@app.get(f"{settings.api_prefix}/health", tags=["internal"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
