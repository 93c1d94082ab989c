"""
Blood Bank Management System API

Run with:
    uvicorn server:app --app-dir backend --reload
"""
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import Settings, get_settings
from database import create_client, ensure_indexes
from routers import blood_units, dashboard, donors, inventory, reports, storage, users


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    return logging.getLogger(__name__)


logger = logging.getLogger(__name__)


def validation_errors(exc: RequestValidationError) -> dict:
    """Flatten pydantic errors to ``{field: message}``."""
    errors = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors[".".join(loc) or "body"] = error.get("msg", "Invalid value")
    return errors


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    client = create_client(settings)
    app.state.mongo_client = client
    app.state.db = client[settings.db_name]
    await ensure_indexes(app.state.db)
    logger.info("Connected to MongoDB database %s", settings.db_name)
    try:
        yield
    finally:
        client.close()
        logger.info("MongoDB connection closed")


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="Blood Bank Management System",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = validation_errors(exc)
        logger.info("Validation error on %s %s: %s", request.method, request.url.path, errors)
        return JSONResponse(
            status_code=400,
            content={"detail": {"message": "Validation error", "errors": errors}},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    for module in (dashboard, inventory, blood_units, reports, donors, storage):
        app.include_router(module.router, prefix=settings.api_prefix)
    app.include_router(users.auth_router, prefix=settings.api_prefix)
    app.include_router(users.router, prefix=settings.api_prefix)

    return app


setup_logging(get_settings().log_level)
app = create_app()
