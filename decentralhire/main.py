from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from decentralhire.api.router import api_router
from decentralhire.core.config import get_settings
from decentralhire.core.telemetry import configure_logging, setup_telemetry, shutdown_telemetry
from decentralhire.services.repository import (
    RepositoryConflictError,
    RepositoryError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)

logger = logging.getLogger(__name__)

REPOSITORY_ERROR_STATUS: dict[type[RepositoryError], int] = {
    RepositoryUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    RepositoryNotFoundError: status.HTTP_404_NOT_FOUND,
    RepositoryConflictError: status.HTTP_409_CONFLICT,
}


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    telemetry_runtime = setup_telemetry(settings)
    logger.info(
        "projector api starting env=%s backend=%s transition_policy=%s claim_before_handling=%s",
        settings.environment,
        "postgres" if settings.database_url else "memory",
        settings.status_transition_policy,
        settings.claim_before_handling,
    )
    try:
        yield
    finally:
        shutdown_telemetry(telemetry_runtime)
        await get_repository().close()
        get_repository.cache_clear()


app = FastAPI(title=get_settings().app_name, lifespan=lifespan)


@app.exception_handler(RepositoryError)
async def repository_error_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    status_code = REPOSITORY_ERROR_STATUS.get(type(exc), status.HTTP_422_UNPROCESSABLE_ENTITY)
    logger.warning("store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc) or type(exc).__name__})


app.include_router(api_router)
