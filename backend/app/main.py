from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from .core.config import settings
from .core.errors import Internal, InvalidInput, ServiceError
from .core.logging import configure_logging
from .db import init_db
from .routes import admin_router, auth_router, markets_router, positions_router, users_router

app = FastAPI(title="Prediction Market API", version="0.1.0", debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(markets_router)
app.include_router(positions_router)
app.include_router(users_router)
app.include_router(admin_router)


def _error_response(error: ServiceError, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content={"detail": error.message, "code": error.code, **extra},
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        InvalidInput("Missing or malformed request fields"),
        errors=jsonable_encoder(exc.errors()),
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.opt(exception=exc).error(
        "Datastore failure during {} {}", request.method, request.url.path
    )
    return _error_response(Internal("Unexpected datastore failure"))


@app.on_event("startup")
def on_startup() -> None:
    """Configure logging and create tables when the API boots."""

    configure_logging(settings)
    init_db()
    logger.info("API started ({} environment)", settings.environment)


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}
