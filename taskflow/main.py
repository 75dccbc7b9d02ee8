import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskflow import __version__
from taskflow.cache.layer import CacheLayer
from taskflow.core.config import Settings, get_settings
from taskflow.core.exceptions import StartupError, TaskFlowError
from taskflow.database import Database
from taskflow.metrics import install_metrics
from taskflow.routers import stats, tasks

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API. Without explicit settings they are read from the environment."""
    if settings is None:
        settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            database = Database(settings.database_url, echo=settings.database_echo)
        except SQLAlchemyError as e:
            logger.critical(f"Invalid database URL: {e}")
            raise StartupError("Invalid database URL", str(e)) from e
        app.state.database = database
        try:
            await database.ping()
            logger.info(f"Connected to database {database.name!r}")
            if settings.create_tables_on_startup:
                await database.create_tables()
        except (SQLAlchemyError, OSError) as e:
            if settings.fail_fast:
                logger.critical(f"Database connection error: {e}")
                await database.close()
                raise StartupError("Failed to connect to database", str(e)) from e
            logger.error(f"Database connection error, serving degraded: {e}")

        if settings.cache_enabled:
            app.state.cache = CacheLayer(settings)
            await app.state.cache.init_cache()

        logger.info(
            f"TaskFlow API started (mode: {settings.environment}, port: {settings.port})"
        )
        try:
            yield
        finally:
            if app.state.cache is not None:
                await app.state.cache.close()
            await database.close()

    app = FastAPI(
        title="TaskFlow API",
        description="Task management API with category, priority and status tracking",
        swagger_ui_parameters={"displayRequestDuration": True},
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cache = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )
    if settings.metrics_enabled:
        app.state.metrics = install_metrics(app)

    _register_exception_handlers(app)

    # Include routers
    app.include_router(tasks.router)
    app.include_router(stats.router)

    @app.get("/health")
    @app.get("/api/health")
    async def health_check(request: Request):
        body = {"status": "healthy", "timestamp": _timestamp()}
        status_code = 200
        if settings.health_check_database:
            try:
                await request.app.state.database.ping()
                body["database"] = "connected"
            except (SQLAlchemyError, OSError) as e:
                status_code = 503
                body.update(status="unhealthy", database="disconnected", error=str(e))
        if request.app.state.cache is not None:
            body["cache"] = request.app.state.cache.get_stats()
        return JSONResponse(body, status_code=status_code)

    if settings.static_dir:
        # registered last: the mount answers every path no route claimed
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
    else:

        @app.get("/")
        async def root():
            return {
                "message": "Welcome to TaskFlow API",
                "docs": "/docs",
                "version": __version__,
            }

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(TaskFlowError)
    async def taskflow_error_handler(request: Request, exc: TaskFlowError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request body"
        for error in errors:
            # messages raised by our own validators are meant for the client
            if error.get("type") == "value_error":
                message = str(error["ctx"]["error"])
                break
        details = [{"loc": list(error["loc"]), "msg": error["msg"]} for error in errors]
        return JSONResponse({"error": message, "details": details}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            {"error": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse({"error": "Internal server error"}, status_code=500)
