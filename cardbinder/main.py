import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cardbinder.api import collection_router, health_router
from cardbinder.config import settings
from cardbinder.db.database import dispose_db, init_db
from cardbinder.models.failure import ErrorResponse, FailureKind, KnownError, StoreError

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    configure_logging()
    await init_db()
    yield
    await dispose_db()


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("cardbinder"),
    lifespan=lifespan,
)

app.include_router(collection_router)
app.include_router(health_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KnownError)
async def known_error_handler(request: Request, exc: KnownError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.error(
            "Store failure during %s for scope %s on %s: %s",
            exc.operation,
            exc.scope,
            request.url.path,
            exc.detail,
        )
    body = exc.to_response().model_dump(mode="json")
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    body = ErrorResponse(
        error="Invalid request.", details=details, kind=FailureKind.VALIDATION_FAILED
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(mode="json")
    )
