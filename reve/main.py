from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import get_settings
from .routes.generation import close_reve_client, router as generation_router
from .routes.health import router as health_router
from .utils.errors import ErrorKind, ReveError
from .utils.unified_logger import setup_logging

logger = logging.getLogger("reve.main")

# HTTP status used when an error carries no upstream status code
KIND_TO_STATUS = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.AUTHENTICATION_ERROR: 401,
    ErrorKind.API_ERROR: 500,
    ErrorKind.REQUEST_ERROR: 502,
    ErrorKind.TIMEOUT_ERROR: 504,
    ErrorKind.GENERATION_ERROR: 502,
    ErrorKind.POLLING_ERROR: 504,
    ErrorKind.UNEXPECTED_RESPONSE: 502,
    ErrorKind.UNKNOWN_ERROR: 500,
}


def status_for(exc: ReveError) -> int:
    if exc.status_code and 400 <= exc.status_code < 600:
        return exc.status_code
    return KIND_TO_STATUS.get(exc.kind, 500)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_reve_client()


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.verbose)

    app = FastAPI(title="Reve Bridge", lifespan=lifespan)

    @app.exception_handler(ReveError)
    async def reve_error_handler(request: Request, exc: ReveError):
        code = status_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %r", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected: %r", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content=exc.to_dict())

    app.include_router(health_router)
    app.include_router(generation_router)
    return app


app = create_app()
