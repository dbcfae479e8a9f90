import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from school_admin.api.v1.auth.router import router as auth_router
from school_admin.api.v1.fees.router import router as fees_router
from school_admin.api.v1.students.router import router as students_router
from school_admin.core.config import settings
from school_admin.core.exceptions import ServiceError
from school_admin.core.logging_config import setup_logging
from school_admin.core.schemas import ErrorResponse
from school_admin.db.init_db import create_tables
from school_admin.db.session import engine

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, errors=None, headers=None) -> JSONResponse:
    body = ErrorResponse(message=message, errors=errors).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _field_errors(exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        # drop the "body"/"query"/"path" prefix
        loc = [str(p) for p in err.get("loc", ())[1:]]
        field = ".".join(loc)
        errors.append(f"{field}: {err.get('msg')}" if field else err.get("msg", ""))
    return errors


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting School Admin API...")
    await create_tables(engine)
    yield
    await engine.dispose()
    logger.info("Shutting down School Admin API...")


def create_app() -> FastAPI:
    setup_logging(settings.log_level)
    app = FastAPI(title="School Admin Backend", lifespan=lifespan)

    # Front-ends are served separately
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, "Validation error", errors=_field_errors(exc))

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return _error(exc.status_code, exc.message, errors=exc.errors)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")

    app.include_router(auth_router)
    app.include_router(students_router)
    app.include_router(fees_router)

    @app.get("/api/v1/health", tags=["health"])
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
