from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from statement_import import __version__
from statement_import.api.middleware.error_handler import (
    handle_generic_error,
    handle_statement_import_error,
    handle_validation_error,
)
from statement_import.api.middleware.logging import RequestLoggingMiddleware
from statement_import.api.v1 import router as v1_router
from statement_import.api.v1.health import router as health_router
from statement_import.config import settings
from statement_import.core.exceptions import StatementImportError
from statement_import.core.logging_config import setup_logging
from statement_import.db.session import async_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, json_format=settings.log_json)
    yield
    await async_engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Statement Import API",
        description="Statement upload, review and confirmation",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers (order matters - most specific first)
    app.add_exception_handler(StatementImportError, handle_statement_import_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_generic_error)

    app.include_router(health_router)
    app.include_router(v1_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
